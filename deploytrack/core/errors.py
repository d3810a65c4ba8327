from __future__ import annotations


class DeployTrackError(Exception):
    """Base error for DeployTrack."""


class ConfigurationError(DeployTrackError):
    """Missing or invalid integration configuration."""


class MissingIdentifierError(DeployTrackError):
    """Neither `id` nor `Deployment ID` was supplied for an update."""


class RecordNotFoundError(DeployTrackError):
    """No spreadsheet row matches the requested deployment identifier."""

    def __init__(self, deployment_id: str) -> None:
        super().__init__(f"Deployment with ID {deployment_id} not found")
        self.deployment_id = deployment_id


class SheetsError(DeployTrackError):
    """Spreadsheet backend failure."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RemoteReadError(SheetsError):
    """Reading from the spreadsheet failed (transport or auth)."""


class RemoteWriteError(SheetsError):
    """Writing to the spreadsheet failed (transport or auth)."""


class NotFoundError(DeployTrackError):
    """Requested audit history entry or account does not exist."""


class InvalidActionError(DeployTrackError):
    """Operation is not permitted for the history entry's action type."""


class IdentityProviderError(DeployTrackError):
    """Identity provider rejected or failed an account operation."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class DatabaseError(DeployTrackError):
    """Database layer failure."""
