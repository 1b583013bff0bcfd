"""Notification Service - Outbox enqueueing and email sending via Graph API

The engine hands over notification events only after a ticket change has
been committed. Events are written to the outbox and sent later by the
outbox scheduler; nothing here can roll back a committed transition.
"""
from typing import Any, Dict, Iterable, List, Optional
import httpx
from datetime import datetime, timedelta
from pydantic import BaseModel, ConfigDict, Field

from ..domain.models import Credit, NotificationOutbox, Ticket
from ..domain.enums import NotificationStatus, NotificationTemplateKey
from ..domain.errors import EmailSendError
from ..repositories.notification_repo import NotificationRepository
from ..templates import get_email_template
from .directory_service import DirectoryService
from ..config.settings import settings
from ..utils.idgen import generate_notification_id
from ..utils.time import utc_now
from ..utils.logger import get_logger

logger = get_logger(__name__)


class NotificationEvent(BaseModel):
    """A notification decided during an action, delivered after commit"""
    model_config = ConfigDict(use_enum_values=True)

    template_key: NotificationTemplateKey
    recipient_ids: List[str] = Field(default_factory=list)
    notify_requester: bool = False
    extra: Dict[str, Any] = Field(default_factory=dict)


class NotificationService:
    """Service for sending notifications"""

    GRAPH_BASE_URL = "https://graph.microsoft.com/v1.0"

    def __init__(
        self,
        repo: Optional[NotificationRepository] = None,
        directory_service: Optional[DirectoryService] = None
    ):
        self.repo = repo or NotificationRepository()
        self.directory_service = directory_service or DirectoryService()
        self._access_token: Optional[str] = None
        self._token_expiry: Optional[datetime] = None

    # =========================================================================
    # Outbox Creation
    # =========================================================================

    def enqueue_notification(
        self,
        template_key: NotificationTemplateKey,
        recipients: List[str],
        payload: Dict[str, Any],
        ticket_id: Optional[str] = None
    ) -> NotificationOutbox:
        """
        Enqueue a notification for sending

        Notifications are stored in outbox and sent asynchronously.
        """
        notification = NotificationOutbox(
            notification_id=generate_notification_id(),
            ticket_id=ticket_id,
            template_key=template_key,
            recipients=recipients,
            payload=payload,
            status=NotificationStatus.PENDING,
            created_at=utc_now()
        )
        return self.repo.create_notification(notification)

    def notify(self, event: NotificationEvent, ticket: Ticket, actor: Credit) -> Optional[NotificationOutbox]:
        """Resolve recipients for an event and write it to the outbox"""
        recipients = self.directory_service.emails_for(event.recipient_ids)
        if event.notify_requester:
            recipients.extend(self._requester_emails(ticket))
        recipients = list(dict.fromkeys(recipients))

        if not recipients:
            logger.warning(
                f"No recipients with email for {event.template_key} on {ticket.ticket_number}",
                extra={"ticket_id": ticket.ticket_id}
            )
            return None

        payload = {
            "ticket_id": ticket.ticket_id,
            "ticket_number": ticket.ticket_number,
            "functionality_name": ticket.functionality_name,
            "status": ticket.status,
            "raised_by_name": ticket.raised_by.name,
            "actor_id": actor.user_id,
            "actor_name": actor.name,
            **event.extra
        }
        return self.enqueue_notification(
            template_key=event.template_key,
            recipients=recipients,
            payload=payload,
            ticket_id=ticket.ticket_id
        )

    def dispatch(self, events: Iterable[NotificationEvent], ticket: Ticket, actor: Credit) -> List[NotificationOutbox]:
        """
        Enqueue every event, best-effort

        Failures are logged per event and never raised to the caller.
        """
        queued: List[NotificationOutbox] = []
        for event in events:
            try:
                notification = self.notify(event, ticket, actor)
            except Exception as e:
                logger.error(
                    f"Failed to enqueue {event.template_key} for {ticket.ticket_number}: {e}",
                    extra={"ticket_id": ticket.ticket_id, "error_code": type(e).__name__}
                )
                continue
            if notification:
                queued.append(notification)
        return queued

    def _requester_emails(self, ticket: Ticket) -> List[str]:
        if ticket.raised_by.email:
            return [str(ticket.raised_by.email)]
        return self.directory_service.emails_for([ticket.raised_by.user_id])

    # =========================================================================
    # Sending
    # =========================================================================

    async def send_notification(self, notification: NotificationOutbox) -> bool:
        """
        Send a single notification via email

        Locking is handled by the scheduler before this is called.
        Returns True if sent successfully, False otherwise.
        """
        start_time = utc_now()

        try:
            email_content = get_email_template(
                template_key=notification.template_key,
                payload=notification.payload,
                app_url=settings.frontend_url
            )

            if settings.mail_enabled:
                await self._send_email_via_graph(
                    recipients=notification.recipients,
                    subject=email_content["subject"],
                    body=email_content["body"]
                )
            else:
                logger.info(
                    f"Mail disabled, not sending '{email_content['subject']}' to {notification.recipients}",
                    extra={"notification_id": notification.notification_id}
                )

            self.repo.mark_sent(notification.notification_id)

            processing_time_ms = (utc_now() - start_time).total_seconds() * 1000
            logger.info(
                f"Sent notification: {notification.notification_id} in {processing_time_ms:.1f}ms",
                extra={
                    "notification_id": notification.notification_id,
                    "ticket_id": notification.ticket_id
                }
            )
            return True

        except Exception as e:
            # Exponential backoff is handled in the repository
            self.repo.mark_failed(notification.notification_id, str(e))
            logger.error(
                f"Failed to send notification: {notification.notification_id}: {e}",
                extra={
                    "notification_id": notification.notification_id,
                    "error_code": getattr(e, "error_code", type(e).__name__)
                }
            )
            return False

    async def _send_email_via_graph(
        self,
        recipients: List[str],
        subject: str,
        body: str
    ) -> None:
        """Send email using Microsoft Graph API with service mailbox (ROPC)"""
        access_token = await self._get_access_token()

        message = {
            "message": {
                "subject": subject,
                "body": {
                    "contentType": "HTML",
                    "content": body
                },
                "toRecipients": [
                    {"emailAddress": {"address": email}}
                    for email in recipients
                ]
            },
            "saveToSentItems": False
        }

        async with httpx.AsyncClient(timeout=30.0) as client:
            response = await client.post(
                f"{self.GRAPH_BASE_URL}/me/sendMail",
                headers={
                    "Authorization": f"Bearer {access_token}",
                    "Content-Type": "application/json"
                },
                json=message
            )

            if response.status_code not in [200, 202]:
                raise EmailSendError(
                    f"Graph API error: {response.status_code}",
                    details={"response": response.text}
                )

    async def _get_access_token(self) -> str:
        """
        Get access token for service mailbox using ROPC

        Token is cached until shortly before expiry.
        """
        if self._access_token and self._token_expiry and utc_now() < self._token_expiry:
            return self._access_token

        token_url = f"https://login.microsoftonline.com/{settings.aad_tenant_id}/oauth2/v2.0/token"

        async with httpx.AsyncClient(timeout=30.0) as client:
            response = await client.post(
                token_url,
                data={
                    "client_id": settings.aad_client_id,
                    "client_secret": settings.aad_client_secret,
                    "scope": "https://graph.microsoft.com/.default",
                    "username": settings.service_mailbox_email,
                    "password": settings.service_mailbox_password,
                    "grant_type": "password"
                }
            )

            if response.status_code != 200:
                raise EmailSendError(
                    f"Failed to get access token: {response.status_code}",
                    details={"response": response.text}
                )

            token_data = response.json()
            self._access_token = token_data["access_token"]
            expires_in = token_data.get("expires_in", 3600)
            self._token_expiry = utc_now() + timedelta(seconds=expires_in - 300)
            return self._access_token
