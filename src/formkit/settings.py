"""Form settings defaults and deep-default merge."""

from __future__ import annotations

from typing import Any

from .snapshot_codec import json_differs

DEFAULT_SUBJECT = "New submission from {{formName}}"
DEFAULT_MESSAGE = "A new submission was received for {{formName}}."


def default_form_settings() -> dict:
    return {
        "allowCsvExport": True,
        "autoCalculateDuration": {"startField": "startTime", "endField": "endTime"},
        "branding": {"logoUrl": ""},
        "notifications": {
            "enabled": False,
            "recipients": [],
            "subject": DEFAULT_SUBJECT,
            "message": DEFAULT_MESSAGE,
            "includeSubmission": True,
        },
    }


def _section(value: Any) -> dict:
    return dict(value) if isinstance(value, dict) else {}


def _flag(value: Any, default: bool) -> bool:
    if value is None:
        return default
    return bool(value)


def _trimmed(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _merge_duration(settings: dict, default: dict) -> dict | None:
    if "autoCalculateDuration" not in settings:
        return dict(default)
    value = settings["autoCalculateDuration"]
    if isinstance(value, dict):
        return {**default, **value}
    if value is None or value is False:
        return None
    return dict(default)


def merge_settings(raw: Any = None) -> dict:
    """Merge ``raw`` over the defaults, section by section.

    Free text is trimmed, recipients are reduced to non-empty trimmed strings,
    and notifications are switched off when nobody would receive them.
    """
    settings = raw if isinstance(raw, dict) else {}
    defaults = default_form_settings()
    result = {**defaults, **settings}

    result["allowCsvExport"] = _flag(result.get("allowCsvExport"), True)
    result["autoCalculateDuration"] = _merge_duration(settings, defaults["autoCalculateDuration"])

    branding = {**defaults["branding"], **_section(settings.get("branding"))}
    branding["logoUrl"] = _trimmed(branding.get("logoUrl"))
    result["branding"] = branding

    notifications = {**defaults["notifications"], **_section(settings.get("notifications"))}
    recipients = notifications.get("recipients")
    if not isinstance(recipients, list):
        recipients = []
    notifications["recipients"] = [r.strip() for r in recipients if isinstance(r, str) and r.strip()]
    notifications["subject"] = _trimmed(notifications.get("subject")) or DEFAULT_SUBJECT
    notifications["message"] = _trimmed(notifications.get("message"))
    notifications["includeSubmission"] = _flag(notifications.get("includeSubmission"), True)
    notifications["enabled"] = bool(notifications.get("enabled")) and bool(notifications["recipients"])
    result["notifications"] = notifications
    return result


def normalize_settings(raw: Any) -> tuple[dict, bool]:
    merged = merge_settings(raw)
    return merged, json_differs(raw, merged)


def duration_fields(settings: Any) -> tuple[str, str] | None:
    """Return (start field id, end field id) when duration tracking is on."""
    if not isinstance(settings, dict):
        return None
    section = settings.get("autoCalculateDuration")
    if not isinstance(section, dict):
        return None
    start = section.get("startField")
    end = section.get("endField")
    if isinstance(start, str) and start and isinstance(end, str) and end:
        return start, end
    return None
