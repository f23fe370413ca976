"""
Notification service for CWV alerts via email and webhooks.
"""
import asyncio
import logging
import smtplib
from datetime import datetime, timezone
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

import httpx

from vitalsman.config import settings
from vitalsman.models.cwv import CwvAlert

logger = logging.getLogger(__name__)


class NotificationService:
    """Service for sending alert notifications."""

    def __init__(self):
        self.smtp_host = settings.SMTP_HOST
        self.smtp_port = settings.SMTP_PORT
        self.smtp_user = settings.SMTP_USER
        self.smtp_password = settings.SMTP_PASSWORD
        self.smtp_from = settings.SMTP_FROM
        self.smtp_use_tls = settings.SMTP_USE_TLS
        self.recipients = settings.alert_recipients_list
        self.webhook_url = settings.CWV_ALERT_WEBHOOK_URL

    @property
    def enabled(self) -> bool:
        email = settings.CWV_EMAIL_ALERTS and bool(self.recipients)
        return email or bool(self.webhook_url)

    async def send_alert(self, alert: CwvAlert) -> list[dict]:
        """Send every configured notification for an alert."""
        results = []

        if settings.CWV_EMAIL_ALERTS:
            results.append(await self._send_email(alert))
        if self.webhook_url:
            results.append(await self._send_webhook(alert))

        return results

    async def _send_email(self, alert: CwvAlert) -> dict:
        """Send email notification."""
        if not self.recipients:
            return {"channel": "email", "success": False, "error": "No recipients configured"}

        if not self.smtp_host:
            return {"channel": "email", "success": False, "error": "SMTP not configured"}

        msg = MIMEMultipart("alternative")
        msg["Subject"] = self.build_subject(alert)
        msg["From"] = self.smtp_from
        msg["To"] = ", ".join(self.recipients)
        msg.attach(MIMEText(self.build_body(alert), "plain"))

        try:
            # smtplib blocks; keep it off the event loop
            await asyncio.get_running_loop().run_in_executor(
                None,
                self._send_smtp,
                msg,
                self.recipients,
            )
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"[ALERTS] SMTP send failed for alert {alert.id}: {e}")
            return {"channel": "email", "success": False, "error": str(e)}

        return {
            "channel": "email",
            "success": True,
            "recipients": self.recipients,
            "sent_at": datetime.now(timezone.utc).isoformat(),
        }

    def _send_smtp(self, msg: MIMEMultipart, recipients: list[str]):
        """Sync SMTP send (run in thread pool)."""
        with smtplib.SMTP(self.smtp_host, self.smtp_port) as server:
            if self.smtp_use_tls:
                server.starttls()
            if self.smtp_user and self.smtp_password:
                server.login(self.smtp_user, self.smtp_password)
            server.sendmail(self.smtp_from, recipients, msg.as_string())

    async def _send_webhook(self, alert: CwvAlert) -> dict:
        """POST the alert payload to the configured webhook."""
        try:
            async with httpx.AsyncClient(timeout=10) as client:
                response = await client.post(self.webhook_url, json=self.build_payload(alert))
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"[ALERTS] Webhook delivery failed for alert {alert.id}: {e}")
            return {"channel": "webhook", "success": False, "error": str(e)}

        return {
            "channel": "webhook",
            "success": True,
            "status_code": response.status_code,
            "sent_at": datetime.now(timezone.utc).isoformat(),
        }

    @staticmethod
    def build_subject(alert: CwvAlert) -> str:
        return (
            f"[{settings.PROJECT_NAME}] Core Web Vitals Alert: "
            f"{alert.metric_name} on page {alert.page_id}"
        )

    @staticmethod
    def build_body(alert: CwvAlert) -> str:
        diagnosis = alert.diagnosis or {}
        recommendations = "\n".join(f"- {r}" for r in diagnosis.get("recommendations", []))
        return (
            "Core Web Vitals Alert\n\n"
            f"Page: {alert.page_id}\n"
            f"URL: {alert.url or ''}\n"
            f"Metric: {alert.metric_name}\n"
            f"Value: {alert.value:.2f}\n"
            f"Rating: {alert.rating}\n"
            f"Device: {alert.device_type}\n\n"
            f"Issue: {diagnosis.get('issue', '')}\n\n"
            f"Recommendations:\n{recommendations}\n\n"
            f"View details: {settings.CWV_DASHBOARD_URL}"
        )

    @staticmethod
    def build_payload(alert: CwvAlert) -> dict:
        return {
            "type": "cwv_degradation",
            "alert_id": str(alert.id),
            "metric": alert.metric_name,
            "page_id": alert.page_id,
            "url": alert.url,
            "value": alert.value,
            "rating": alert.rating,
            "device_type": alert.device_type,
            "diagnosis": alert.diagnosis or {},
            "created_at": alert.created_at.isoformat() if alert.created_at else None,
        }
