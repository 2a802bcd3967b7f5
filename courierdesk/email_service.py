"""
email_service.py — Email templates and the durable outbox

Every email the core asks for is rendered to HTML and written to the
notifications table first; a background loop drains pending rows through
a SendGrid-compatible HTTP API.

Business Rules:
- The outbox row is the channel of record; live events are best-effort
- No API key configured -> rows stay pending, nothing is sent
- A failed send increments retry_count; at outbox_max_retries the row is failed
- All user-supplied text is HTML-escaped

Called by: services/notifier.py (render + enqueue), main.py (drain loop)
Depends on: models.Notification, http_client, config, structlog
"""

import asyncio
import html

import httpx
import structlog
from sqlalchemy.orm import Session

from .config import settings
from .database import utcnow
from .http_client import http
from .models import Notification

logger = structlog.get_logger("courierdesk.email")

TEMPLATES = (
    "request_created",
    "request_claimed",
    "request_status_changed",
    "resolution_provided",
    "resolution_accepted",
    "resolution_rejected",
)


# ── Templates ────────────────────────────────────────────────────────


def _e(value) -> str:
    return html.escape(str(value if value is not None else ""))


def _request_link(request_id) -> str:
    return (
        f'<p style="margin-top:20px"><a href="{settings.app_url}/requests/{_e(request_id)}" '
        'style="background:#2563eb;color:white;padding:10px 24px;text-decoration:none;border-radius:5px">'
        "View Request</a></p>"
    )


def _wrap(title: str, inner: str) -> str:
    return f"""
    <div style="font-family:Arial,sans-serif;max-width:640px">
        <h2 style="color:#2563eb">{title}</h2>
        {inner}
        <p style="color:#6b7280;font-size:12px;margin-top:20px">
            This is an automated message from CourierDesk.
        </p>
    </div>
    """


def render(template: str, data: dict) -> tuple[str, str]:
    """Return (subject, html_body) for a template. Unknown templates raise ValueError."""
    product = _e(data.get("product_name"))
    link = _request_link(data.get("request_id"))

    if template == "request_created":
        return (
            f"Request received: {data.get('product_name', '')}",
            _wrap(
                "Request Received",
                f"<p>Hi {_e(data.get('customer_name'))},</p>"
                f"<p>Your request for <strong>{product}</strong> is now visible to our agents.</p>{link}",
            ),
        )
    if template == "request_claimed":
        return (
            f"An agent is working on {data.get('product_name', '')}",
            _wrap(
                "Request Claimed",
                f"<p>Hi {_e(data.get('customer_name'))},</p>"
                f"<p><strong>{_e(data.get('agent_name'))}</strong> has claimed your request for "
                f"<strong>{product}</strong> and will send a quote shortly.</p>{link}",
            ),
        )
    if template == "request_status_changed":
        reason = data.get("reason")
        reason_html = (
            f'<p style="background:#f0f9ff;padding:10px;border-left:3px solid #2563eb">'
            f"<strong>Reason:</strong> {_e(reason)}</p>"
            if reason
            else ""
        )
        return (
            f"Request update: {data.get('product_name', '')} is now {data.get('new_status', '')}",
            _wrap(
                "Request Status Update",
                f"<p>Hi {_e(data.get('name'))},</p>"
                f"<p>The request for <strong>{product}</strong> moved from "
                f"<strong>{_e(data.get('old_status'))}</strong> to "
                f"<strong>{_e(data.get('new_status'))}</strong>.</p>{reason_html}{link}",
            ),
        )
    if template == "resolution_provided":
        notes = data.get("notes")
        notes_html = f"<p>Agent notes: {_e(notes)}</p>" if notes else ""
        return (
            f"Quote ready for {data.get('product_name', '')}",
            _wrap(
                "Your Quote Is Ready",
                f"<p>Hi {_e(data.get('customer_name'))},</p>"
                f"<p>Total: <strong>${float(data.get('total') or 0):,.2f}</strong><br>"
                f"Estimated delivery: <strong>{_e(data.get('estimated_delivery_days'))} days</strong></p>"
                f"{notes_html}{link}",
            ),
        )
    if template == "resolution_accepted":
        return (
            f"Quote accepted: {data.get('product_name', '')}",
            _wrap(
                "Quote Accepted",
                f"<p>Hi {_e(data.get('agent_name'))},</p>"
                f"<p>The customer accepted your quote of "
                f"<strong>${float(data.get('total') or 0):,.2f}</strong> for <strong>{product}</strong>. "
                f"The request is awaiting payment.</p>{link}",
            ),
        )
    if template == "resolution_rejected":
        return (
            f"Quote rejected: {data.get('product_name', '')}",
            _wrap(
                "Quote Rejected",
                f"<p>Hi {_e(data.get('agent_name'))},</p>"
                f"<p>The customer rejected your quote for <strong>{product}</strong>.</p>"
                f'<p style="background:#fef2f2;padding:10px;border-left:3px solid #dc2626">'
                f"<strong>Customer notes:</strong> {_e(data.get('customer_notes'))}</p>"
                f"<p>The request is back with you for a revised quote.</p>{link}",
            ),
        )
    raise ValueError(f"Unknown email template: {template}")


def enqueue(db: Session, template: str, recipient: str, data: dict) -> Notification:
    """Render and write one pending outbox row. The caller commits."""
    subject, body = render(template, data)
    row = Notification(
        user_id=data.get("user_id"),
        recipient=recipient,
        template=template,
        subject=subject,
        body=body,
        status="pending",
        context={k: v for k, v in data.items() if isinstance(v, (str, int, float, bool, type(None)))},
    )
    db.add(row)
    return row


# ── Outbox drain ─────────────────────────────────────────────────────


def _payload(row: Notification) -> dict:
    return {
        "personalizations": [{"to": [{"email": row.recipient}]}],
        "from": {"email": settings.email_from},
        "subject": row.subject,
        "content": [{"type": "text/html", "value": row.body}],
    }


async def deliver_pending(db: Session, limit: int | None = None) -> dict:
    """Send up to `limit` pending outbox rows. Returns counts of sent/failed/retrying."""
    stats = {"sent": 0, "failed": 0, "retrying": 0}
    if not settings.email_api_key:
        logger.debug("outbox_skipped", reason="no_api_key")
        return stats

    rows = (
        db.query(Notification)
        .filter(Notification.status == "pending")
        .order_by(Notification.created_at)
        .limit(limit or settings.outbox_batch_size)
        .all()
    )
    headers = {"Authorization": f"Bearer {settings.email_api_key}"}

    for row in rows:
        try:
            resp = await http.post(settings.email_api_url, json=_payload(row), headers=headers, timeout=15)
            resp.raise_for_status()
        except httpx.HTTPError as e:
            row.retry_count = (row.retry_count or 0) + 1
            row.failed_reason = str(e)[:500]
            if row.retry_count >= settings.outbox_max_retries:
                row.status = "failed"
                stats["failed"] += 1
                logger.warning("email_failed", notification_id=row.id, to=row.recipient, error=str(e))
            else:
                stats["retrying"] += 1
                logger.info("email_retry", notification_id=row.id, to=row.recipient, attempt=row.retry_count, error=str(e))
            continue

        row.status = "sent"
        row.sent_at = utcnow()
        row.failed_reason = None
        stats["sent"] += 1

    db.commit()
    if rows:
        logger.info("outbox_drained", **stats)
    return stats


async def run_outbox_loop(session_factory, interval: int | None = None):
    """Drain the outbox forever. Started from the app lifespan."""
    interval = interval or settings.outbox_poll_seconds
    logger.info("outbox_loop_started", interval_s=interval)
    while True:
        await asyncio.sleep(interval)
        db = session_factory()
        try:
            await deliver_pending(db)
        except Exception:
            logger.exception("outbox_drain_error")
            db.rollback()
        finally:
            db.close()
