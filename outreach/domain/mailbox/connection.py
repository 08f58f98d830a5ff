"""
Mailbox connection manager
Owns the Gmail OAuth lifecycle: connect, proactive refresh, self-healing purge
"""

import asyncio
import logging
import weakref
from datetime import datetime, timedelta
from typing import Optional

import httpx
from sqlalchemy.orm import Session

from ... import config
from ...errors import DecryptionFailure, MailboxApiError, MailboxErrorKind, ReauthRequired
from ...models import MailboxConnection
from .gmail_client import GmailClient, GoogleOAuthClient
from .repository import MailboxRepository
from .vault import CredentialVault, get_vault

logger = logging.getLogger(__name__)

# Refresh rejections that mean the grant is gone for good
_REJECTED_KINDS = {MailboxErrorKind.UNAUTHORIZED, MailboxErrorKind.FORBIDDEN, MailboxErrorKind.BAD_REQUEST}


class KeyedLocks:
    """asyncio.Lock per key; idle locks are dropped with their last reference"""

    def __init__(self):
        self._locks: "weakref.WeakValueDictionary[int, asyncio.Lock]" = weakref.WeakValueDictionary()

    def get(self, key: int) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock


# Process-wide: serializes token refresh per user across concurrent requests
refresh_locks = KeyedLocks()


class MailboxConnectionManager:
    """
    DISCONNECTED -> CONNECTED -> (REFRESHING) -> CONNECTED | DISCONNECTED

    Any refresh rejection or undecryptable ciphertext deletes the record and
    raises ReauthRequired; a half-valid credential is never kept.
    """

    def __init__(
        self,
        db: Session,
        vault: Optional[CredentialVault] = None,
        oauth: Optional[GoogleOAuthClient] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.db = db
        self.vault = vault or get_vault()
        self.oauth = oauth or GoogleOAuthClient(transport=transport)
        self.transport = transport
        self.repo = MailboxRepository()
        self.refresh_buffer = timedelta(minutes=config.TOKEN_REFRESH_BUFFER_MINUTES)

    def get_connection(self, user_id: int) -> Optional[MailboxConnection]:
        return self.repo.get_by_user(self.db, user_id)

    def _require_connection(self, user_id: int) -> MailboxConnection:
        connection = self.get_connection(user_id)
        if not connection:
            raise ReauthRequired("Gmail not connected. Please connect Gmail in settings.")
        return connection

    def _purge(self, user_id: int, reason: str) -> ReauthRequired:
        logger.warning(f"🧹 Deleting mailbox connection for user {user_id}: {reason}")
        self.repo.delete_for_user(self.db, user_id)
        return ReauthRequired()

    def _decrypt(self, user_id: int, ciphertext: str) -> str:
        try:
            return self.vault.decrypt(ciphertext)
        except DecryptionFailure as e:
            raise self._purge(user_id, "stored token could not be decrypted") from e

    def needs_refresh(self, connection: MailboxConnection) -> bool:
        return datetime.utcnow() + self.refresh_buffer >= connection.token_expires_at

    async def connect(self, user_id: int, auth_code: str) -> MailboxConnection:
        """Exchange an authorization code and persist the encrypted tokens"""
        tokens = await self.oauth.exchange_code(auth_code)
        if not tokens.refresh_token:
            raise MailboxApiError(MailboxErrorKind.BAD_REQUEST, "Google did not return a refresh token")

        email = await self.oauth.get_user_email(tokens.access_token)
        if not email:
            raise MailboxApiError(MailboxErrorKind.BAD_REQUEST, "Google account has no email address")

        connection = self.repo.upsert(
            self.db,
            user_id,
            access_token=self.vault.encrypt(tokens.access_token),
            refresh_token=self.vault.encrypt(tokens.refresh_token),
            expires_at=datetime.utcnow() + timedelta(seconds=tokens.expires_in),
            connected_email=email,
        )
        logger.info(f"✅ Gmail connected for user {user_id}")
        return connection

    async def get_valid_access_token(self, user_id: int) -> str:
        connection = self._require_connection(user_id)
        if not self.needs_refresh(connection):
            return self._decrypt(user_id, connection.access_token)

        async with refresh_locks.get(user_id):
            # Another request may have refreshed while we waited
            self.db.expire_all()
            connection = self._require_connection(user_id)
            if not self.needs_refresh(connection):
                return self._decrypt(user_id, connection.access_token)
            return await self._refresh(user_id, connection)

    async def refresh(self, user_id: int) -> str:
        async with refresh_locks.get(user_id):
            connection = self._require_connection(user_id)
            return await self._refresh(user_id, connection)

    async def _refresh(self, user_id: int, connection: MailboxConnection) -> str:
        logger.info(f"🔄 Gmail token for user {user_id} expires at {connection.token_expires_at}, refreshing...")

        # Both ciphertexts must decrypt or the record is invalid
        refresh_token = self._decrypt(user_id, connection.refresh_token)
        self._decrypt(user_id, connection.access_token)

        try:
            tokens = await self.oauth.refresh(refresh_token)
        except MailboxApiError as e:
            if e.kind in _REJECTED_KINDS:
                raise self._purge(user_id, f"refresh rejected ({e.kind.value})") from e
            raise

        connection.access_token = self.vault.encrypt(tokens.access_token)
        if tokens.refresh_token:
            connection.refresh_token = self.vault.encrypt(tokens.refresh_token)
        connection.token_expires_at = datetime.utcnow() + timedelta(seconds=tokens.expires_in)
        self.db.commit()

        logger.info(f"✅ Gmail token refreshed for user {user_id}")
        return tokens.access_token

    async def get_client(self, user_id: int) -> GmailClient:
        access_token = await self.get_valid_access_token(user_id)
        return GmailClient(access_token, transport=self.transport)

    def get_connected_email(self, user_id: int) -> str:
        return self._require_connection(user_id).connected_email

    def disconnect(self, user_id: int) -> bool:
        deleted = self.repo.delete_for_user(self.db, user_id)
        if deleted:
            logger.info(f"🔌 Gmail disconnected for user {user_id}")
        return deleted
