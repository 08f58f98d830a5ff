"""Email service - Business logic for saved drafts"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ...errors import AlreadySent, NotFound
from ...models import EmailStatus, GeneratedEmail, User
from ..ai.repository import GenerationRepository
from .repository import EmailRepository
from .schemas import EmailCreate, EmailListResponse, EmailResponse, EmailUpdate, RecipientSummary

logger = logging.getLogger(__name__)


def to_email_response(email: GeneratedEmail, open_count: int = 0, click_count: int = 0) -> EmailResponse:
    recipient = email.recipient
    return EmailResponse(
        id=email.id,
        recipientId=email.recipient_id,
        recipient=RecipientSummary(
            id=recipient.id, name=recipient.name, email=recipient.email, organization=recipient.organization
        )
        if recipient
        else None,
        subject=email.subject,
        body=email.body,
        tone=email.tone,
        purpose=email.purpose,
        status=email.status,
        attachedDocumentIds=email.attached_document_ids or [],
        trackingId=email.tracking_id,
        providerMessageId=email.provider_message_id,
        providerThreadId=email.provider_thread_id,
        errorMessage=email.error_message,
        sentAt=email.sent_at,
        conversationRead=bool(email.conversation_read),
        createdAt=email.created_at,
        openCount=open_count,
        clickCount=click_count,
    )


class EmailService:
    """Service layer for draft operations"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = EmailRepository()

    def get_email(self, email_id: int, user: User) -> GeneratedEmail:
        email = self.repo.get_email(self.db, email_id, user.id)
        if not email:
            raise NotFound("Email", email_id)
        return email

    def get_email_response(self, email: GeneratedEmail) -> EmailResponse:
        """Response for an already-loaded draft, with its open/click counts"""
        opens, clicks = self.repo.count_events(self.db, [email.id])
        return to_email_response(email, opens.get(email.id, 0), clicks.get(email.id, 0))

    def list_emails(self, user: User, status: Optional[str], page: int, page_size: int) -> EmailListResponse:
        emails, total = self.repo.list_emails(
            self.db, user.id, status=status, offset=(page - 1) * page_size, limit=page_size
        )
        opens, clicks = self.repo.count_events(self.db, [e.id for e in emails])
        return EmailListResponse(
            emails=[to_email_response(e, opens.get(e.id, 0), clicks.get(e.id, 0)) for e in emails],
            total=total,
            page=page,
            pageSize=page_size,
        )

    def _validate_documents(self, user: User, document_ids: list[int]) -> list[int]:
        documents = self.repo.get_documents(self.db, user.id, document_ids)
        found = {d.id for d in documents}
        missing = [d for d in document_ids if d not in found]
        if missing:
            raise NotFound("Document", missing[0])
        return list(dict.fromkeys(document_ids))

    def create_email(self, user: User, data: EmailCreate) -> EmailResponse:
        if not GenerationRepository.get_recipient(self.db, data.recipientId, user.id):
            raise NotFound("Recipient", data.recipientId)

        email = self.repo.create_email(
            self.db,
            user.id,
            recipient_id=data.recipientId,
            subject=data.subject,
            body=data.body,
            tone=data.tone.value,
            purpose=data.purpose.value,
            attached_document_ids=self._validate_documents(user, data.attachedDocumentIds),
        )
        logger.info(f"📝 Draft {email.id} saved for user {user.id}")
        return to_email_response(email)

    def update_email(self, email_id: int, user: User, data: EmailUpdate) -> EmailResponse:
        email = self.get_email(email_id, user)
        if email.status == EmailStatus.SENT.value:
            raise AlreadySent(email_id)

        updates = {}
        if data.subject is not None:
            updates["subject"] = data.subject
        if data.body is not None:
            updates["body"] = data.body
        if data.attachedDocumentIds is not None:
            updates["attached_document_ids"] = self._validate_documents(user, data.attachedDocumentIds)

        email = self.repo.update_email(self.db, email, **updates)
        return to_email_response(email)

    def mark_read(self, email_id: int, user: User) -> EmailResponse:
        email = self.get_email(email_id, user)
        email = self.repo.update_email(self.db, email, conversation_read=True)
        return to_email_response(email)
