"""Organisation data export - CSV per record type, with an audit entry."""

import csv
import io
import json
import uuid
from datetime import datetime

import structlog
from sqlalchemy import inspect

from scoreflow.models import AuditLog

logger = structlog.get_logger()

# Never leave the database
EXCLUDED_COLUMNS = {"webhook_secret_encrypted"}


def _cell(value) -> str:
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"), default=str)
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def record_to_row(record) -> dict:
    """Column attributes of an ORM instance, in mapper order."""
    return {
        attr.key: getattr(record, attr.key)
        for attr in inspect(record).mapper.column_attrs
        if attr.key not in EXCLUDED_COLUMNS
    }


def to_csv(rows: list[dict]) -> str:
    """Header from the first row's keys; every value quoted, nested values as JSON."""
    if not rows:
        return ""
    headers = list(rows[0].keys())
    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(headers)
    for row in rows:
        writer.writerow([_cell(row.get(h)) for h in headers])
    return buf.getvalue().rstrip("\n")


def export_organisation(store, org_id: uuid.UUID, actor: str) -> dict[str, str]:
    """Export an organisation's assessments, categories, leads, responses and scores as CSV strings."""
    assessments = store.list_assessments(org_id)
    assessment_ids = [a.id for a in assessments]
    categories = [c for a in assessments for c in store.list_categories(a.id)]
    leads = store.list_leads(org_id)
    responses = store.list_responses_for_leads([l.id for l in leads])
    scores = store.list_scores(assessment_ids)

    bundle = {
        "assessments": to_csv([record_to_row(r) for r in assessments]),
        "categories": to_csv([record_to_row(r) for r in categories]),
        "leads": to_csv([record_to_row(r) for r in leads]),
        "responses": to_csv([record_to_row(r) for r in responses]),
        "scores": to_csv([record_to_row(r) for r in scores]),
    }

    counts = {
        "assessments": len(assessments),
        "categories": len(categories),
        "leads": len(leads),
        "responses": len(responses),
        "scores": len(scores),
    }
    store.add_audit_log(AuditLog(
        id=uuid.uuid4(),
        org_id=org_id,
        action="data_exported",
        actor=actor,
        resource_type="organisation",
        resource_id=str(org_id),
        summary=f"Exported {counts['leads']} leads across {counts['assessments']} assessments",
        extra_data=counts,
        timestamp=datetime.utcnow(),
    ))
    logger.info("data_exported", org_id=str(org_id), actor=actor, **counts)
    return bundle
