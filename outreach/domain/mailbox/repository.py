"""Mailbox repository - Database operations for mailbox connections"""

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...models import MailboxConnection


class MailboxRepository:
    """Repository for mailbox connection records"""

    @staticmethod
    def get_by_user(db: Session, user_id: int) -> Optional[MailboxConnection]:
        return db.query(MailboxConnection).filter(MailboxConnection.user_id == user_id).first()

    @staticmethod
    def upsert(
        db: Session,
        user_id: int,
        access_token: str,
        refresh_token: str,
        expires_at: datetime,
        connected_email: str,
    ) -> MailboxConnection:
        connection = MailboxRepository.get_by_user(db, user_id)
        if connection:
            connection.access_token = access_token
            connection.refresh_token = refresh_token
            connection.token_expires_at = expires_at
            connection.connected_email = connected_email
            connection.updated_at = datetime.utcnow()
        else:
            connection = MailboxConnection(
                user_id=user_id,
                access_token=access_token,
                refresh_token=refresh_token,
                token_expires_at=expires_at,
                connected_email=connected_email,
            )
            db.add(connection)
        db.commit()
        db.refresh(connection)
        return connection

    @staticmethod
    def delete_for_user(db: Session, user_id: int) -> bool:
        deleted = db.query(MailboxConnection).filter(MailboxConnection.user_id == user_id).delete()
        db.commit()
        return deleted > 0
