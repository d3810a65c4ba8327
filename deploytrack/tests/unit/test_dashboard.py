from __future__ import annotations

from datetime import date

from deploytrack.services.dashboard import build_deployment_stats, parse_deployment_date


TODAY = date(2024, 6, 15)


def _record(deployment_id: str, status: str, deployment_date: str = "", **fields: str) -> dict[str, str]:
    return {"Deployment ID": deployment_id, "Status": status, "Deployment Date": deployment_date, **fields}


def test_parse_deployment_date_accepts_common_sheet_formats() -> None:
    assert parse_deployment_date("2024-06-15") == date(2024, 6, 15)
    assert parse_deployment_date("6/15/2024") == date(2024, 6, 15)
    assert parse_deployment_date("June 15, 2024") == date(2024, 6, 15)
    assert parse_deployment_date("") is None
    assert parse_deployment_date("next week") is None


def test_status_counters() -> None:
    records = [
        _record("DEP-1", "Completed"),
        _record("DEP-2", "Deployed"),
        _record("DEP-3", "In Progress"),
        _record("DEP-4", "Ready to Deploy"),
        _record("DEP-5", "Pending"),
        _record("DEP-6", "Cancelled"),
    ]
    stats = build_deployment_stats(records, today=TODAY)
    assert stats["total"] == 6
    assert stats["completed"] == 2
    assert stats["in_progress"] == 2
    assert stats["pending"] == 1
    assert {"name": "Cancelled", "value": 1} in stats["by_status"]


def test_department_falls_back_and_is_capped() -> None:
    records = [_record(f"DEP-{i}", "Pending", **{"Department": f"Dept {i}"}) for i in range(9)]
    records.append(_record("DEP-X", "Pending", **{"Department - Division": "Dept 0"}))
    records.append(_record("DEP-Y", "Pending"))
    stats = build_deployment_stats(records, today=TODAY)
    assert len(stats["by_department"]) == 7
    assert stats["by_department"][0] == {"name": "Dept 0", "value": 2}


def test_device_type_and_priority_distribution() -> None:
    records = [
        _record("DEP-1", "Pending", **{"New Device Type": "Laptop", "Priority": "High"}),
        _record("DEP-2", "Pending", **{"Deployment Type": "Refresh", "Priority": "High"}),
        _record("DEP-3", "Pending"),
    ]
    stats = build_deployment_stats(records, today=TODAY)
    assert sorted(item["name"] for item in stats["by_device_type"]) == ["Laptop", "Refresh", "Unknown"]
    assert stats["by_priority"] == [{"name": "High", "value": 2}]


def test_recent_and_upcoming_timelines() -> None:
    records = [
        _record("DEP-OLD", "Completed", "2024-01-01"),
        _record("DEP-TODAY", "Completed", "2024-06-15"),
        _record("DEP-SOON", "Pending", "2024-06-16"),
        _record("DEP-LATER", "Pending", "2024-09-01"),
        _record("DEP-BAD", "Pending", "tbd"),
    ]
    stats = build_deployment_stats(records, today=TODAY)
    assert [item["Deployment ID"] for item in stats["recent"]] == ["DEP-TODAY", "DEP-OLD"]
    assert [item["Deployment ID"] for item in stats["upcoming"]] == ["DEP-SOON", "DEP-LATER"]
    assert stats["recent"][0]["id"] == "DEP-TODAY"


def test_timelines_are_limited_to_five() -> None:
    records = [_record(f"DEP-{day}", "Pending", f"2024-07-{day:02d}") for day in range(1, 10)]
    stats = build_deployment_stats(records, today=TODAY)
    assert len(stats["upcoming"]) == 5
    assert stats["upcoming"][0]["Deployment ID"] == "DEP-1"
    assert stats["recent"] == []
