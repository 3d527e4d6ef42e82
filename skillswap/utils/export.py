import csv
import io
import json
from datetime import datetime

USER_COLUMNS = [
    "id", "name", "email", "location", "role", "is_active", "is_email_verified",
    "rating", "reviews_count", "total_swaps", "successful_swaps",
    "skills_offered", "skills_wanted", "created_at", "last_login_at",
]
SWAP_COLUMNS = [
    "id", "requester_id", "recipient_id", "skill_offered", "skill_wanted", "status",
    "priority", "learning_mode", "duration_estimated_hours", "is_flagged",
    "created_at", "response_by", "accepted_at", "rejected_at", "completed_at", "cancelled_at",
]
REVIEW_COLUMNS = [
    "id", "reviewer_id", "reviewee_id", "swap_request_id", "skill_taught", "skill_learned",
    "rating_overall", "would_recommend", "is_public", "is_hidden", "comment", "created_at",
]

EXPORT_COLUMNS = {"users": USER_COLUMNS, "swaps": SWAP_COLUMNS, "reviews": REVIEW_COLUMNS}


def _cell(value):
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, list):
        return ", ".join(str(v) for v in value)
    if hasattr(value, "value"):
        return value.value
    return value


def to_rows(records, columns):
    return [{column: _cell(getattr(record, column)) for column in columns} for record in records]


def export_to_csv(records, columns):
    output = io.StringIO()
    writer = csv.DictWriter(output, fieldnames=columns)
    writer.writeheader()
    for row in to_rows(records, columns):
        writer.writerow(row)
    return output.getvalue()


def export_to_json(records, columns):
    return json.dumps(to_rows(records, columns), indent=2)


MODERATION_COLUMNS = ["id", "name", "email", "is_active", "ban_reason", "banned_at", "banned_by"]

REPORT_COLUMNS = {
    "user-activity": USER_COLUMNS,
    "feedback-logs": REVIEW_COLUMNS,
    "swap-stats": SWAP_COLUMNS,
    "moderation-log": MODERATION_COLUMNS,
}


def report_to_json(report_type, summary, records, columns, date_from=None, date_to=None):
    body = {
        "success": True,
        "report_type": report_type,
        "generated_at": datetime.utcnow().isoformat(),
        "date_range": {"from": _cell(date_from), "to": _cell(date_to)},
        **summary,
        "records": to_rows(records, columns),
    }
    return json.dumps(body, indent=2)
