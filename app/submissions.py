from __future__ import annotations

from typing import Any

from app.notifications import dispatch_submission_notification
from form_store import FormStore
from formkit.settings import duration_fields

DURATION_KEY = "__durationMinutes"


class MissingFieldsError(ValueError):
    def __init__(self, fields: list[str]) -> None:
        super().__init__("Missing required fields")
        self.fields = fields


def _is_blank(value: Any) -> bool:
    if isinstance(value, list):
        return not value
    return value is None or value == ""


def missing_required_fields(form: dict, payload: dict) -> list[str]:
    return [
        field["id"]
        for field in form.get("fields") or []
        if field.get("required") and _is_blank(payload.get(field.get("id")))
    ]


def _minutes(value: Any) -> int | None:
    parts = str(value).split(":")
    try:
        hours = int(parts[0])
    except ValueError:
        return None
    try:
        minutes = int(parts[1]) if len(parts) > 1 else 0
    except ValueError:
        minutes = 0
    return hours * 60 + minutes


def duration_minutes(start: Any, end: Any) -> int | None:
    """Minutes between two ``HH:MM`` values, or None unless end is after start."""
    start_minutes = _minutes(start)
    end_minutes = _minutes(end)
    if start_minutes is None or end_minutes is None:
        return None
    diff = end_minutes - start_minutes
    return diff if diff > 0 else None


def submit(store: FormStore, form: dict, payload: dict | None, workspace: dict | None = None) -> dict | None:
    data = dict(payload) if isinstance(payload, dict) else {}
    missing = missing_required_fields(form, data)
    if missing:
        raise MissingFieldsError(missing)
    pair = duration_fields(form.get("settings"))
    if pair:
        start, end = data.get(pair[0]), data.get(pair[1])
        if start and end:
            minutes = duration_minutes(start, end)
            if minutes is not None:
                data[DURATION_KEY] = minutes
    submission = store.add_submission(form["id"], data)
    if submission is None:
        return None
    if workspace is None:
        workspace = store.get_workspace(form.get("workspaceId"))
    dispatch_submission_notification(form, submission, workspace)
    return submission
