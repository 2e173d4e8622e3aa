import aiosmtplib
from html import escape
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
import logging

from eventhub.config import get_settings
from eventhub.models.transaction import TransactionStatus
from eventhub.services.settlement import SettlementNotice

settings = get_settings()
logger = logging.getLogger(__name__)


def _layout(heading: str, body: str) -> str:
    return f"""
        <html>
        <body style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
            <h1 style="color: #4F46E5;">{heading}</h1>
            {body}
            <p>Best,<br>The EventHub Team</p>
        </body>
        </html>
        """


class EmailService:
    @staticmethod
    async def send_email(to_email: str, subject: str, html_content: str) -> bool:
        """Send an email using SMTP."""
        if not settings.smtp_user or not settings.smtp_password:
            logger.warning("SMTP not configured, skipping email send")
            return False

        message = MIMEMultipart("alternative")
        message["From"] = settings.smtp_user
        message["To"] = to_email
        message["Subject"] = subject

        html_part = MIMEText(html_content, "html")
        message.attach(html_part)

        try:
            await aiosmtplib.send(
                message,
                hostname=settings.smtp_host,
                port=settings.smtp_port,
                username=settings.smtp_user,
                password=settings.smtp_password,
                start_tls=True
            )
            return True
        except Exception as e:
            logger.error(f"Failed to send email: {e}")
            return False

    @staticmethod
    async def send_transaction_confirmed(notice: SettlementNotice) -> bool:
        """Tell the buyer their payment was accepted."""
        transaction_url = f"{settings.frontend_url}/transactions/{notice.transaction_id}"

        html_content = _layout("Payment Confirmed!", f"""
            <p>Hi {escape(notice.user_name)},</p>
            <p>Your payment for <strong>{escape(notice.event_title)}</strong> has been confirmed.</p>
            <div style="background-color: #F3F4F6; padding: 20px; border-radius: 8px; margin: 20px 0;">
                <p style="margin: 5px 0;"><strong>Transaction ID:</strong> {notice.transaction_id}</p>
                <p style="margin: 5px 0;"><strong>Amount paid:</strong> {notice.final_amount:,}</p>
                <p style="margin: 5px 0;"><strong>Points earned:</strong> {notice.points_awarded:,}</p>
            </div>
            <p><a href="{transaction_url}">View your tickets</a></p>
        """)

        return await EmailService.send_email(
            notice.user_email, f"Payment confirmed - {notice.event_title}", html_content
        )

    @staticmethod
    async def send_transaction_rejected(notice: SettlementNotice) -> bool:
        """Tell the buyer their payment proof was rejected, and why."""
        restored = ""
        if notice.points_restored:
            restored = f"<p>The {notice.points_restored:,} points you used have been returned to your balance.</p>"

        html_content = _layout("Payment Rejected", f"""
            <p>Hi {escape(notice.user_name)},</p>
            <p>Unfortunately your payment for <strong>{escape(notice.event_title)}</strong> could not be verified.</p>
            <div style="background-color: #F3F4F6; padding: 20px; border-radius: 8px; margin: 20px 0;">
                <p style="margin: 5px 0;"><strong>Transaction ID:</strong> {notice.transaction_id}</p>
                <p style="margin: 5px 0;"><strong>Reason:</strong> {escape(notice.reason or "")}</p>
            </div>
            {restored}
        """)

        return await EmailService.send_email(
            notice.user_email, f"Payment rejected - {notice.event_title}", html_content
        )

    @staticmethod
    async def send_transaction_expired(notice: SettlementNotice) -> bool:
        """Tell the buyer the payment window closed before proof was uploaded."""
        html_content = _layout("Transaction Expired", f"""
            <p>Hi {escape(notice.user_name)},</p>
            <p>We did not receive payment for <strong>{escape(notice.event_title)}</strong> before the deadline,
            so transaction {notice.transaction_id} has expired and the tickets were released.</p>
        """)

        return await EmailService.send_email(
            notice.user_email, f"Transaction expired - {notice.event_title}", html_content
        )

    @staticmethod
    async def send_referral_reward(to_email: str, name: str, referred_name: str, points: int) -> bool:
        """Thank a referrer for bringing in a new user."""
        html_content = _layout("You Earned Referral Points!", f"""
            <p>Hi {escape(name)},</p>
            <p>{escape(referred_name)} just joined using your referral code.</p>
            <p>We've added <strong>{points:,} points</strong> to your balance. They expire in
            {settings.point_expiry_months} months, so use them on your next event!</p>
        """)

        return await EmailService.send_email(to_email, "You earned referral points!", html_content)

    @staticmethod
    async def notify_settlement(notice: SettlementNotice) -> bool:
        """Send the email matching a settlement outcome. Never raises."""
        senders = {
            TransactionStatus.CONFIRMED: EmailService.send_transaction_confirmed,
            TransactionStatus.REJECTED: EmailService.send_transaction_rejected,
            TransactionStatus.EXPIRED: EmailService.send_transaction_expired,
        }
        sender = senders.get(notice.status)
        if sender is None:
            return False

        try:
            return await sender(notice)
        except Exception as e:
            logger.error(f"Failed to notify transaction {notice.transaction_id}: {e}")
            return False
