"""Email repository - Database operations for drafts and tracking events"""

from datetime import datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from ...models import Document, EmailOpen, EmailStatus, GeneratedEmail, LinkClick


class EmailRepository:
    """Repository for draft and tracking event database operations"""

    @staticmethod
    def get_email(db: Session, email_id: int, user_id: int) -> Optional[GeneratedEmail]:
        return (
            db.query(GeneratedEmail)
            .options(joinedload(GeneratedEmail.recipient))
            .filter(GeneratedEmail.id == email_id, GeneratedEmail.user_id == user_id)
            .first()
        )

    @staticmethod
    def get_by_tracking_id(db: Session, tracking_id: str) -> Optional[GeneratedEmail]:
        return db.query(GeneratedEmail).filter(GeneratedEmail.tracking_id == tracking_id).first()

    @staticmethod
    def list_emails(
        db: Session, user_id: int, status: Optional[str] = None, offset: int = 0, limit: int = 20
    ) -> tuple[list[GeneratedEmail], int]:
        """Page of drafts (newest first) and the total matching count"""
        query = db.query(GeneratedEmail).filter(GeneratedEmail.user_id == user_id)
        if status:
            query = query.filter(GeneratedEmail.status == status)

        total = query.count()
        emails = (
            query.options(joinedload(GeneratedEmail.recipient))
            .order_by(GeneratedEmail.created_at.desc(), GeneratedEmail.id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
        return emails, total

    @staticmethod
    def create_email(db: Session, user_id: int, **email_data) -> GeneratedEmail:
        email = GeneratedEmail(user_id=user_id, status=EmailStatus.DRAFT.value, **email_data)
        db.add(email)
        db.commit()
        db.refresh(email)
        return email

    @staticmethod
    def update_email(db: Session, email: GeneratedEmail, **updates) -> GeneratedEmail:
        for key, value in updates.items():
            setattr(email, key, value)
        db.commit()
        db.refresh(email)
        return email

    @staticmethod
    def get_documents(db: Session, user_id: int, document_ids: list[int]) -> list[Document]:
        if not document_ids:
            return []
        return (
            db.query(Document)
            .filter(Document.user_id == user_id, Document.id.in_(document_ids))
            .order_by(Document.id)
            .all()
        )

    # ------------------------------------------------------------------
    # Tracking events (append-only)
    # ------------------------------------------------------------------

    @staticmethod
    def record_open(db: Session, email_id: int, ip_address: str, user_agent: str) -> EmailOpen:
        event = EmailOpen(email_id=email_id, ip_address=ip_address, user_agent=user_agent, opened_at=datetime.utcnow())
        db.add(event)
        db.commit()
        return event

    @staticmethod
    def record_click(db: Session, email_id: int, original_url: str, ip_address: str, user_agent: str) -> LinkClick:
        event = LinkClick(
            email_id=email_id,
            original_url=original_url,
            ip_address=ip_address,
            user_agent=user_agent,
            clicked_at=datetime.utcnow(),
        )
        db.add(event)
        db.commit()
        return event

    @staticmethod
    def get_opens(db: Session, email_id: int) -> list[EmailOpen]:
        return db.query(EmailOpen).filter(EmailOpen.email_id == email_id).order_by(EmailOpen.opened_at).all()

    @staticmethod
    def get_clicks(db: Session, email_id: int) -> list[LinkClick]:
        return db.query(LinkClick).filter(LinkClick.email_id == email_id).order_by(LinkClick.clicked_at).all()

    @staticmethod
    def count_events(db: Session, email_ids: list[int]) -> tuple[dict[int, int], dict[int, int]]:
        """Open and click totals per draft id, for list views"""
        if not email_ids:
            return {}, {}
        opens = dict(
            db.query(EmailOpen.email_id, func.count(EmailOpen.id))
            .filter(EmailOpen.email_id.in_(email_ids))
            .group_by(EmailOpen.email_id)
            .all()
        )
        clicks = dict(
            db.query(LinkClick.email_id, func.count(LinkClick.id))
            .filter(LinkClick.email_id.in_(email_ids))
            .group_by(LinkClick.email_id)
            .all()
        )
        return opens, clicks
