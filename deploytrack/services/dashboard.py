from __future__ import annotations

from collections import Counter
from datetime import date, datetime
from typing import Any, Iterable

from deploytrack.domain.deployments import (
    STATUS_COMPLETED,
    STATUS_DEPLOYED,
    STATUS_IN_PROGRESS,
    STATUS_PENDING,
    STATUS_READY_TO_DEPLOY,
    DeploymentRecord,
    with_aliases,
)


_DATE_FORMATS = ("%Y-%m-%d", "%m/%d/%Y", "%m/%d/%y", "%Y/%m/%d", "%d-%b-%Y", "%B %d, %Y")
_TOP_DEPARTMENTS = 7
_TIMELINE_SIZE = 5


def parse_deployment_date(value: Any) -> date | None:
    # Sheet dates arrive in whatever display format the sheet uses; unparseable means unknown.
    text = str(value or "").strip()
    if not text:
        return None
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def _distribution(values: Iterable[str]) -> list[dict[str, Any]]:
    counts = Counter(values)
    return [{"name": name, "value": count} for name, count in counts.items()]


def build_deployment_stats(records: list[DeploymentRecord], *, today: date) -> dict[str, Any]:
    # Summarize deployments for dashboard cards and charts.
    statuses = [str(record.get("Status") or "") for record in records]
    completed = sum(1 for status in statuses if status in {STATUS_COMPLETED, STATUS_DEPLOYED})
    in_progress = sum(1 for status in statuses if status in {STATUS_IN_PROGRESS, STATUS_READY_TO_DEPLOY})
    pending = sum(1 for status in statuses if status == STATUS_PENDING)

    departments = [
        str(record.get("Department - Division") or record.get("Department") or "Unknown")
        for record in records
    ]
    by_department = sorted(_distribution(departments), key=lambda item: item["value"], reverse=True)

    device_types = [
        str(record.get("New Device Type") or record.get("Deployment Type") or "Unknown")
        for record in records
    ]

    dated = [
        (parsed, record)
        for record in records
        if (parsed := parse_deployment_date(record.get("Deployment Date"))) is not None
    ]
    recent = sorted((item for item in dated if item[0] <= today), key=lambda item: item[0], reverse=True)
    upcoming = sorted((item for item in dated if item[0] > today), key=lambda item: item[0])

    return {
        "total": len(records),
        "completed": completed,
        "in_progress": in_progress,
        "pending": pending,
        "by_status": _distribution(status for status in statuses if status),
        "by_department": by_department[:_TOP_DEPARTMENTS],
        "by_device_type": _distribution(device_types),
        "by_priority": _distribution(
            str(record["Priority"]) for record in records if record.get("Priority")
        ),
        "recent": [with_aliases(record) for _parsed, record in recent[:_TIMELINE_SIZE]],
        "upcoming": [with_aliases(record) for _parsed, record in upcoming[:_TIMELINE_SIZE]],
    }
