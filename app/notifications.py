"""Submission alerts.

Delivery is a log record on ``forms.notifications``; there is no mail
transport. A broken template never blocks a submission.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from jinja2 import TemplateError

from app.template_render import check_templates, render_template
from formkit.ids import now_iso
from formkit.settings import DEFAULT_MESSAGE

TEMPLATE_VARS = ("formName", "submissionId", "workspaceName", "submittedAt")
FALLBACK_SUBJECT = "New submission received"

logger = logging.getLogger("forms.notifications")


def _section(form: dict | None) -> dict:
    settings = (form or {}).get("settings") or {}
    section = settings.get("notifications")
    return section if isinstance(section, dict) else {}


def notification_context(form: dict, submission: dict | None, workspace: dict | None) -> dict:
    submission = submission or {}
    return {
        "formName": form.get("name") or "Form",
        "submissionId": submission.get("id") or "",
        "workspaceName": (workspace or {}).get("name") or "",
        "submittedAt": submission.get("submittedAt") or now_iso(),
    }


def _render(label: str, text: str, context: dict, fallback: str) -> str:
    try:
        return render_template(text, context)
    except TemplateError as exc:
        logger.warning("notification_template_failed template=%s error=%s", label, exc)
        return fallback


def dispatch_submission_notification(form: dict, submission: dict | None, workspace: dict | None) -> dict | None:
    """Render and log the alert for a stored submission.

    Returns the rendered alert, or None when notifications are off or have no
    recipients.
    """
    section = _section(form)
    if not section.get("enabled"):
        return None
    recipients = [r for r in section.get("recipients") or [] if isinstance(r, str) and r]
    if not recipients:
        return None

    context = notification_context(form, submission, workspace)
    subject = _render("subject", section.get("subject") or FALLBACK_SUBJECT, context, FALLBACK_SUBJECT)
    message = _render("message", section.get("message") or DEFAULT_MESSAGE, context, "")
    alert: dict[str, Any] = {"recipients": recipients, "subject": subject, "message": message}
    if section.get("includeSubmission", True) is not False:
        alert["data"] = (submission or {}).get("data") or {}

    logger.info(
        "submission_alert form_id=%s submission_id=%s recipients=%s subject=%r message=%r",
        form.get("id"),
        context["submissionId"],
        ",".join(recipients),
        subject,
        message,
    )
    if "data" in alert:
        logger.info("submission_alert_data submission_id=%s data=%s", context["submissionId"], json.dumps(alert["data"], default=str))
    return alert


def template_warnings(settings: Any) -> list[dict]:
    if not isinstance(settings, dict):
        return []
    section = settings.get("notifications")
    if not isinstance(section, dict):
        return []
    templates = [("notifications.subject", section.get("subject")), ("notifications.message", section.get("message"))]
    return check_templates(templates, TEMPLATE_VARS)
