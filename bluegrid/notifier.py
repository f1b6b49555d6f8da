# Notification dispatch: SMTP email and WhatsApp (Twilio REST) sends, fire-and-forget

import html
import logging
import re
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Dict, Optional

import aiosmtplib
import httpx

from . import config

logger = logging.getLogger(__name__)


def email_configured() -> bool:
    return bool(config.SMTP_USER and config.SMTP_PASSWORD)


def whatsapp_configured() -> bool:
    return bool(config.TWILIO_ACCOUNT_SID and config.TWILIO_AUTH_TOKEN)


def normalize_phone(phone: Optional[str]) -> Optional[str]:
    """Return an E.164 number, assuming the default country code for bare 10-digit numbers."""
    if not phone:
        return None
    digits = re.sub(r"[^\d+]", "", phone)
    if digits.startswith("+"):
        return digits if len(digits) > 8 else None
    if len(digits) == 10:
        return f"{config.DEFAULT_COUNTRY_CODE}{digits}"
    if len(digits) == 12 and digits.startswith(config.DEFAULT_COUNTRY_CODE.lstrip("+")):
        return f"+{digits}"
    return None


def _render_html(subject: str, text: str) -> str:
    body = "<br>".join(html.escape(line) for line in text.splitlines())
    return (
        '<html><body style="font-family: Arial, sans-serif; color: #1f2937; padding: 24px;">'
        f'<h2 style="color: #1e40af;">{config.EMAIL_FROM_NAME}</h2>'
        f"<h3>{html.escape(subject)}</h3><p>{body}</p>"
        '<p style="font-size: 12px; color: #6b7280;">This is an automated message.</p>'
        "</body></html>"
    )


async def send_email(to_email: str, subject: str, text: str, html_body: Optional[str] = None) -> Dict:
    """Send one email. Never raises; returns {"sent": bool, "error": str | None}."""
    if not email_configured():
        logger.warning("[Email] SMTP not configured, skipping send to %s (%s)", to_email, subject)
        return {"sent": False, "error": "Email service not configured"}
    message = MIMEMultipart("alternative")
    message["From"] = f"{config.EMAIL_FROM_NAME} <{config.EMAIL_FROM}>"
    message["To"] = to_email
    message["Subject"] = subject
    message.attach(MIMEText(text, "plain"))
    message.attach(MIMEText(html_body or _render_html(subject, text), "html"))
    try:
        await aiosmtplib.send(
            message,
            hostname=config.SMTP_HOST,
            port=config.SMTP_PORT,
            username=config.SMTP_USER,
            password=config.SMTP_PASSWORD,
            start_tls=True,
        )
    except (aiosmtplib.SMTPException, OSError) as e:
        logger.error("[Email] Failed to send to %s: %s", to_email, e)
        return {"sent": False, "error": str(e)}
    logger.info("[Email] Sent to %s: %s", to_email, subject)
    return {"sent": True, "error": None}


async def verify_smtp() -> bool:
    if not email_configured():
        return False
    smtp = aiosmtplib.SMTP(hostname=config.SMTP_HOST, port=config.SMTP_PORT, start_tls=True)
    try:
        await smtp.connect()
        await smtp.login(config.SMTP_USER, config.SMTP_PASSWORD)
        await smtp.quit()
        return True
    except (aiosmtplib.SMTPException, OSError) as e:
        logger.error("[Email] SMTP verification failed: %s", e)
        return False


async def send_whatsapp(phone: str, body: str, client: Optional[httpx.AsyncClient] = None) -> Dict:
    """Send a WhatsApp message through the Twilio Messages resource."""
    number = normalize_phone(phone)
    if number is None:
        return {"sent": False, "error": "Invalid phone number"}
    if not whatsapp_configured():
        logger.warning("[WhatsApp] Twilio not configured, skipping send to %s", number)
        return {"sent": False, "error": "WhatsApp service not configured"}
    url = f"{config.TWILIO_API_BASE}/Accounts/{config.TWILIO_ACCOUNT_SID}/Messages.json"
    data = {"From": config.TWILIO_WHATSAPP_FROM, "To": f"whatsapp:{number}", "Body": body}
    auth = (config.TWILIO_ACCOUNT_SID, config.TWILIO_AUTH_TOKEN)
    try:
        if client is None:
            async with httpx.AsyncClient(timeout=15) as c:
                resp = await c.post(url, data=data, auth=auth)
        else:
            resp = await client.post(url, data=data, auth=auth)
        resp.raise_for_status()
    except httpx.HTTPStatusError as e:
        logger.error("[WhatsApp] Twilio rejected message to %s: %s", number, e.response.text[:200])
        return {"sent": False, "error": f"Twilio error {e.response.status_code}"}
    except httpx.HTTPError as e:
        logger.error("[WhatsApp] Failed to reach Twilio for %s: %s", number, e)
        return {"sent": False, "error": str(e)}
    logger.info("[WhatsApp] Sent to %s (sid=%s)", number, resp.json().get("sid"))
    return {"sent": True, "error": None}


async def notify(email: Optional[str], phone: Optional[str], subject: str, message: str) -> Dict:
    """Send on every channel that has an address; report per-channel outcome."""
    results = {"email": {"sent": False, "error": "No email address"},
               "whatsapp": {"sent": False, "error": "No phone number"}}
    if email:
        results["email"] = await send_email(email, subject, message)
    if phone:
        results["whatsapp"] = await send_whatsapp(phone, f"*{subject}*\n{message}")
    return results


# ---------------------------------------------------------------------------
# Lifecycle messages
# ---------------------------------------------------------------------------
def _ref(report: dict) -> str:
    return report["_id"][:8].upper()


def assignment_messages(report: dict, technician: dict) -> Dict[str, tuple]:
    """(subject, body) pairs for the technician and the resident when a report is assigned."""
    where = report.get("address") or "the reported location"
    return {
        "technician": (
            f"New repair task #{_ref(report)}",
            f"Hello {technician.get('full_name') or 'Technician'},\n"
            f"You have been assigned a pipe-damage report at {where}.\n"
            f"Reporter: {report.get('full_name')} ({report.get('mobile_number') or 'no phone'})\n"
            f"Notes: {report.get('notes') or '-'}\n"
            "Please accept the task from your dashboard.",
        ),
        "resident": (
            f"Your report #{_ref(report)} has been assigned",
            f"Dear {report.get('full_name')},\n"
            f"Technician {technician.get('full_name') or ''} has been assigned to your report at {where}.",
        ),
    }


def decision_message(report: dict) -> tuple:
    if report["status"] == "approved":
        return (f"Repair approved for report #{_ref(report)}",
                f"Dear {report.get('full_name')},\nThe repair for your report has been "
                "verified and approved by the panchayat office. Please share your feedback.")
    return (f"Repair rejected for report #{_ref(report)}",
            f"Dear {report.get('full_name')},\nThe submitted repair was not accepted "
            f"and will be redone.\nReason: {report.get('rejection_reason')}")


def otp_message(otp: str, minutes: int) -> tuple:
    return ("BlueGrid - Your verification code",
            f"Your verification code is {otp}.\nThis code expires in {minutes} minutes.")


async def dispatch(email: Optional[str], phone: Optional[str], subject: str, message: str) -> None:
    """Background-task entry point: send and log, never raise."""
    results = await notify(email, phone, subject, message)
    failed = [ch for ch, r in results.items() if not r["sent"] and r["error"] not in
              ("No email address", "No phone number")]
    if failed:
        logger.warning("Notification '%s' not delivered on: %s", subject, ", ".join(failed))
