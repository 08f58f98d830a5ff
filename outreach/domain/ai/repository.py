"""AI repository - Context lookups and usage accounting"""

import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...models import AIUsage, Document, Profile, Recipient

logger = logging.getLogger(__name__)


class GenerationRepository:
    """Repository for generation context and usage rows"""

    @staticmethod
    def get_profile(db: Session, user_id: int) -> Optional[Profile]:
        return db.query(Profile).filter(Profile.user_id == user_id).first()

    @staticmethod
    def get_recipient(db: Session, recipient_id: int, user_id: int) -> Optional[Recipient]:
        return (
            db.query(Recipient)
            .filter(Recipient.id == recipient_id, Recipient.user_id == user_id)
            .first()
        )

    @staticmethod
    def get_documents_with_text(db: Session, user_id: int) -> list[Document]:
        return (
            db.query(Document)
            .filter(Document.user_id == user_id, Document.extracted_text.isnot(None))
            .order_by(Document.created_at.desc())
            .all()
        )

    @staticmethod
    def record_usage(
        db: Session,
        user_id: int,
        provider: str,
        model: str,
        success: bool,
        error_message: Optional[str] = None,
    ) -> None:
        """Accounting must never mask the generation result"""
        try:
            db.add(
                AIUsage(
                    user_id=user_id,
                    provider=provider,
                    model=model,
                    success=success,
                    error_message=error_message,
                )
            )
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"❌ Failed to record AI usage for user {user_id}: {e}")
