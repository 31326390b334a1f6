"""
결제 관련 메일 발송 (SMTP)
"""
import asyncio
import html
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr
from typing import Any, Dict, Optional

from core.interfaces import IMailService
from core.responses import TransientDownstreamError
from core.subscription_config import PlanDetails

logger = logging.getLogger(__name__)


def _format_date(value: Any) -> str:
    if not value:
        return "-"
    text = str(value)
    return text[:10]


def _format_amount(subscription: Dict[str, Any]) -> str:
    try:
        amount = float(subscription.get("amount") or 0)
    except (TypeError, ValueError):
        amount = 0.0
    return f"{subscription.get('currency') or 'PHP'} {amount:,.2f}"


def _display_name(user: Dict[str, Any]) -> str:
    parts = [user.get("first_name") or "", user.get("last_name") or ""]
    name = " ".join(p for p in parts if p).strip() or user.get("email") or ""
    return html.escape(name)


def render_payment_confirmation(subscription: Dict[str, Any], user: Dict[str, Any], plan: PlanDetails) -> str:
    features = "".join(f"<li>{html.escape(feature)}</li>" for feature in plan.features)
    return f"""
    <html>
    <body>
        <h2>Payment Confirmed</h2>
        <p>Hi {_display_name(user)},</p>
        <p>Thank you! Your payment for the <strong>{html.escape(plan.name)}</strong> has been received.</p>
        <table>
            <tr><td>Transaction ID:</td><td>{html.escape(str(subscription.get('external_payment_id') or '-'))}</td></tr>
            <tr><td>Invoice ID:</td><td>{html.escape(str(subscription.get('external_invoice_id') or '-'))}</td></tr>
            <tr><td>Status:</td><td>Paid</td></tr>
            <tr><td>Amount Paid:</td><td>{_format_amount(subscription)}</td></tr>
        </table>
        <h3>Your Subscription Includes:</h3>
        <ul>{features}</ul>
        <p><strong>Subscription Period:</strong>
        {_format_date(subscription.get('start_date'))} to {_format_date(subscription.get('end_date'))}</p>
    </body>
    </html>
    """


def render_invoice(subscription: Dict[str, Any], user: Dict[str, Any], plan: PlanDetails, invoice_url: str) -> str:
    return f"""
    <html>
    <body>
        <h2>Your Invoice</h2>
        <p>Hi {_display_name(user)},</p>
        <p>Please complete the payment for the <strong>{html.escape(plan.name)}</strong> ({_format_amount(subscription)}).</p>
        <p><a href="{html.escape(invoice_url or '')}">Pay Now</a></p>
        <p>Invoice ID: {html.escape(str(subscription.get('external_invoice_id') or '-'))}</p>
    </body>
    </html>
    """


class MailService(IMailService):
    """SMTP 메일 발송기

    smtplib은 블로킹이므로 워커 스레드에서 실행한다.
    """

    def __init__(
        self,
        host: Optional[str],
        port: int = 587,
        username: Optional[str] = None,
        password: Optional[str] = None,
        use_tls: bool = True,
        from_address: Optional[str] = None,
        from_name: str = "Subscriptions",
        enabled: bool = True,
        timeout: float = 30.0,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.from_address = from_address or username
        self.from_name = from_name
        self.timeout = timeout
        self.enabled = bool(enabled and host and self.from_address)

    @classmethod
    def from_settings(cls, settings) -> "MailService":
        return cls(
            host=settings.MAIL_HOST,
            port=settings.MAIL_PORT,
            username=settings.MAIL_USERNAME,
            password=settings.MAIL_PASSWORD,
            use_tls=settings.MAIL_USE_TLS,
            from_address=settings.MAIL_FROM_ADDRESS,
            from_name=settings.MAIL_FROM_NAME,
            enabled=settings.MAIL_ENABLED,
        )

    async def send_payment_confirmation(
        self,
        subscription: Dict[str, Any],
        user: Dict[str, Any],
        plan: PlanDetails,
    ) -> bool:
        subject = f"Payment Confirmation - {plan.name}"
        html = render_payment_confirmation(subscription, user, plan)
        return await self.send(user.get("email"), subject, html)

    async def send_invoice(
        self,
        subscription: Dict[str, Any],
        user: Dict[str, Any],
        plan: PlanDetails,
        invoice_url: str,
    ) -> bool:
        subject = f"Invoice for {plan.name}"
        html = render_invoice(subscription, user, plan, invoice_url)
        return await self.send(user.get("email"), subject, html)

    async def send(self, to_email: Optional[str], subject: str, html: str) -> bool:
        if not self.enabled:
            logger.warning("[MAIL] mailer disabled; not sending '%s'", subject)
            return False
        if not to_email:
            logger.warning("[MAIL] no recipient for '%s'", subject)
            return False

        message = MIMEMultipart("alternative")
        message["Subject"] = subject
        message["From"] = formataddr((self.from_name, self.from_address))
        message["To"] = to_email
        message.attach(MIMEText(html, "html"))

        try:
            await asyncio.to_thread(self._deliver, to_email, message)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("[MAIL] failed to send '%s' to %s: %s", subject, to_email, e)
            raise TransientDownstreamError("smtp", str(e)) from e

        logger.info("[MAIL] sent '%s' to %s", subject, to_email)
        return True

    def _deliver(self, to_email: str, message: MIMEMultipart) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
            if self.use_tls:
                server.starttls()
            if self.username and self.password:
                server.login(self.username, self.password)
            server.sendmail(self.from_address, [to_email], message.as_string())
