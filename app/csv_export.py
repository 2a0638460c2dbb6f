from __future__ import annotations

import csv
import io
import json
from typing import Any

from app.submissions import DURATION_KEY
from formkit.settings import duration_fields

DURATION_HEADER = "Duration (minutes)"


def format_cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, list):
        return "; ".join("" if item is None else str(item) for item in value)
    if isinstance(value, dict):
        return json.dumps(value)
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def export_filename(form: dict) -> str:
    return f"{form.get('slug') or form.get('id')}-submissions.csv"


def submissions_csv(form: dict, submissions: list[dict]) -> str:
    fields = form.get("fields") or []
    with_duration = duration_fields(form.get("settings")) is not None
    header = ["Submission ID", "Submitted At", *[f.get("label") or f.get("id") for f in fields]]
    if with_duration:
        header.append(DURATION_HEADER)

    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(header)
    for submission in submissions:
        data = submission.get("data") or {}
        row = [submission.get("id"), submission.get("submittedAt")]
        row.extend(format_cell(data.get(f.get("id"))) for f in fields)
        if with_duration:
            row.append(format_cell(data.get(DURATION_KEY)))
        writer.writerow(row)
    return buf.getvalue()
