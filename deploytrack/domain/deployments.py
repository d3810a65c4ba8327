from __future__ import annotations

from typing import Any


DeploymentRecord = dict[str, Any]

ID_FIELD = "id"
DEPLOYMENT_ID_FIELD = "Deployment ID"
IDENTIFIER_FIELDS = (ID_FIELD, DEPLOYMENT_ID_FIELD)

# Presentation vocabulary only; the store accepts any Status string.
STATUS_PENDING = "Pending"
STATUS_ASSIGNED = "Assigned"
STATUS_IN_PROGRESS = "In Progress"
STATUS_READY_TO_DEPLOY = "Ready to Deploy"
STATUS_CANCELLED = "Cancelled"
STATUS_ON_HOLD = "On Hold"
STATUS_COMPLETED = "Completed"
STATUS_DEPLOYED = "Deployed"

STATUS_VALUES = (
    STATUS_PENDING,
    STATUS_ASSIGNED,
    STATUS_IN_PROGRESS,
    STATUS_READY_TO_DEPLOY,
    STATUS_CANCELLED,
    STATUS_ON_HOLD,
    STATUS_COMPLETED,
    STATUS_DEPLOYED,
)


def record_id(record: DeploymentRecord) -> str | None:
    """Return the canonical identifier of a record.

    `Deployment ID` is the sheet column and wins over the `id` alias when
    both are present; blank values count as absent.
    """
    for field in (DEPLOYMENT_ID_FIELD, ID_FIELD):
        value = record.get(field)
        if value is None:
            continue
        text = str(value).strip()
        if text:
            return text
    return None


def with_aliases(record: DeploymentRecord) -> DeploymentRecord:
    # Mirror the canonical identifier into both alias fields.
    resolved = dict(record)
    identifier = record_id(record)
    if identifier is not None:
        resolved[ID_FIELD] = identifier
        resolved[DEPLOYMENT_ID_FIELD] = identifier
    return resolved


def matches_identifier(record: DeploymentRecord, identifier: str) -> bool:
    return any(str(record.get(field) or "").strip() == identifier for field in IDENTIFIER_FIELDS)
