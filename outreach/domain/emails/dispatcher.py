"""
Mail dispatcher
Sends drafts through the user's Gmail connection and records the outcome
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Any

from sqlalchemy.orm import Session

from ... import config
from ...errors import AlreadySent, MailboxApiError, NoThread, NotFound, TransportError
from ...models import EmailStatus, GeneratedEmail, User
from ..mailbox.connection import MailboxConnectionManager
from .conversation import ConversationReconstructor, extract_address
from .mime import Attachment, build_message, encode_raw, reply_subject
from .repository import EmailRepository
from .tracking import body_to_html, generate_tracking_id, instrument

logger = logging.getLogger(__name__)


class MailDispatcher:
    """
    DRAFT | FAILED -> SENT, or DRAFT | FAILED -> FAILED.

    Status is written only after Gmail answers. A crash between Gmail
    accepting the message and the commit leaves the draft unsent on our side
    even though it went out (at-least-once send, at-most-once record).
    """

    def __init__(self, db: Session, connections: MailboxConnectionManager):
        self.db = db
        self.connections = connections
        self.conversation = ConversationReconstructor(connections)
        self.repo = EmailRepository()
        self.upload_dir = Path(config.UPLOAD_DIR).resolve()

    def _get_email(self, email_id: int, user_id: int) -> GeneratedEmail:
        email = self.repo.get_email(self.db, email_id, user_id)
        if not email:
            raise NotFound("Email", email_id)
        return email

    def load_attachments(self, email: GeneratedEmail) -> list[Attachment]:
        documents = self.repo.get_documents(self.db, email.user_id, email.attached_document_ids or [])
        attachments = []
        for document in documents:
            path = (self.upload_dir / document.file_path).resolve()
            if self.upload_dir not in path.parents or not path.is_file():
                logger.error(f"❌ Attachment file missing for document {document.id}")
                raise NotFound("Attachment file", document.name)
            attachments.append(Attachment(filename=document.name, content=path.read_bytes(), mime_type=document.mime_type))
        return attachments

    async def send(self, user: User, email_id: int) -> GeneratedEmail:
        """Send a draft; FAILED drafts re-enter here on resend"""
        email = self._get_email(email_id, user.id)
        if email.status == EmailStatus.SENT.value:
            raise AlreadySent(email_id)

        # ReauthRequired propagates before anything is written
        client = await self.connections.get_client(user.id)
        sender = self.connections.get_connected_email(user.id)
        attachments = self.load_attachments(email)

        tracking_id = email.tracking_id or generate_tracking_id()
        html_body = instrument(body_to_html(email.body), tracking_id)
        message = build_message(sender, email.recipient.email, email.subject, html_body, attachments)

        logger.info(f"📧 Sending email {email.id} for user {user.id} ({len(attachments)} attachments)")
        try:
            result = await client.send_raw(encode_raw(message))
        except MailboxApiError as e:
            logger.error(f"❌ Email {email.id} failed to send: {e.message}")
            self.repo.update_email(
                self.db,
                email,
                status=EmailStatus.FAILED.value,
                error_message=e.message,
                tracking_id=tracking_id,
            )
            raise TransportError(e.message, retryable=e.kind.retryable) from e

        email = self.repo.update_email(
            self.db,
            email,
            status=EmailStatus.SENT.value,
            sent_at=datetime.utcnow(),
            tracking_id=tracking_id,
            provider_message_id=result.get("id"),
            provider_thread_id=result.get("threadId"),
            error_message=None,
        )
        logger.info(f"✅ Email {email.id} sent (thread {email.provider_thread_id})")
        return email

    async def send_reply(self, user: User, email_id: int, body: str) -> dict[str, Any]:
        """Reply to the latest message in a sent draft's thread"""
        email = self._get_email(email_id, user.id)
        if not email.provider_thread_id or not email.provider_message_id:
            raise NoThread()

        messages = await self.conversation.get_thread(user.id, email.provider_thread_id)
        if not messages:
            raise NoThread("Could not find messages in thread")

        latest = messages[-1]
        to = email.recipient.email if latest.is_from_me else extract_address(latest.sender)

        client = await self.connections.get_client(user.id)
        sender = self.connections.get_connected_email(user.id)
        message = build_message(
            sender,
            to,
            reply_subject(email.subject),
            body_to_html(body),
            in_reply_to=latest.message_id_header or latest.id,
        )

        try:
            result = await client.send_raw(encode_raw(message), thread_id=email.provider_thread_id)
        except MailboxApiError as e:
            logger.error(f"❌ Reply on email {email.id} failed: {e.message}")
            raise TransportError(e.message, retryable=e.kind.retryable) from e

        logger.info(f"✅ Reply sent on thread {email.provider_thread_id}")
        return {"success": True, "messageId": result.get("id"), "threadId": result.get("threadId")}
