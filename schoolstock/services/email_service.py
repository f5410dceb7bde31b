from dataclasses import dataclass
from email.message import EmailMessage
import smtplib
from typing import Any, Literal

from schoolstock.core.config import settings

EmailDeliveryStatus = Literal["sent", "not_configured", "failed"]


@dataclass(frozen=True)
class EmailDeliveryResult:
    status: EmailDeliveryStatus
    detail: str | None = None
    delivered: int = 0


def smtp_configured() -> bool:
    return bool(settings.smtp_host and settings.smtp_sender_email)


def build_low_stock_subject(item_count: int) -> str:
    noun = "Item Needs" if item_count == 1 else "Items Need"
    return f"Low Stock Alert - {item_count} {noun} Attention"


def build_low_stock_body(*, first_name: str, items: list[dict[str, Any]]) -> str:
    lines = [
        f"Hello {first_name},",
        "",
        "The following inventory items are at or below their minimum stock level:",
        "",
    ]
    for item in items:
        lines.append(
            f"- {item['name']} ({item['sku']}) [{item['category']}]: "
            f"{item['current_stock']} on hand, minimum {item['min_stock']}, short by {item['shortage']}"
        )
    lines.append("")
    lines.append("Please restock these items as soon as possible.")
    return "\n".join(lines)


def _open_smtp() -> smtplib.SMTP:
    if settings.smtp_use_ssl:
        server: smtplib.SMTP = smtplib.SMTP_SSL(
            settings.smtp_host,
            settings.smtp_port,
            timeout=settings.smtp_timeout_seconds,
        )
    else:
        server = smtplib.SMTP(
            settings.smtp_host,
            settings.smtp_port,
            timeout=settings.smtp_timeout_seconds,
        )
        if settings.smtp_use_starttls:
            server.starttls()
    if settings.smtp_username:
        server.login(settings.smtp_username, settings.smtp_password or "")
    return server


def send_low_stock_alert_email(
    *,
    recipients: list[tuple[str, str]],
    items: list[dict[str, Any]],
) -> EmailDeliveryResult:
    """Send one message per (email, first_name) recipient over a single SMTP connection."""
    if not smtp_configured():
        return EmailDeliveryResult(status="not_configured", detail="SMTP not configured")
    if not recipients:
        return EmailDeliveryResult(status="failed", detail="No active recipients")

    subject = build_low_stock_subject(len(items))
    delivered = 0
    try:
        with _open_smtp() as server:
            for email, first_name in recipients:
                message = EmailMessage()
                message["Subject"] = subject
                message["From"] = settings.smtp_sender_email
                message["To"] = email
                if settings.smtp_reply_to_email:
                    message["Reply-To"] = settings.smtp_reply_to_email
                message.set_content(build_low_stock_body(first_name=first_name, items=items))
                server.send_message(message)
                delivered += 1
    except Exception as exc:  # noqa: BLE001 - expose short status back to caller
        return EmailDeliveryResult(status="failed", detail=str(exc)[:255], delivered=delivered)

    return EmailDeliveryResult(status="sent", delivered=delivered)
