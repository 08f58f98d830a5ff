"""
Conversation reconstruction
Rebuilds a draft's Gmail thread on demand and derives reply state from it
"""

import base64
import logging
from dataclasses import asdict, dataclass
from email.utils import parseaddr
from typing import Any, Optional

from ...errors import MailboxApiError, ReauthRequired
from ...models import GeneratedEmail
from ..mailbox.connection import MailboxConnectionManager

logger = logging.getLogger(__name__)


@dataclass
class ThreadMessage:
    id: str
    thread_id: str
    sender: str
    to: str
    subject: str
    snippet: str
    body: str
    date: str
    is_from_me: bool
    # RFC 822 Message-ID, used for In-Reply-To when replying
    message_id_header: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "threadId": self.thread_id,
            "from": self.sender,
            "to": self.to,
            "subject": self.subject,
            "snippet": self.snippet,
            "body": self.body,
            "date": self.date,
            "isFromMe": self.is_from_me,
        }


@dataclass
class ReplyStats:
    total_messages: int = 0
    replies_from_recipient: int = 0
    replies_from_me: int = 0
    unread: bool = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def is_from_me(from_header: str, my_address: str) -> bool:
    """
    Case-insensitive substring match of the mailbox address in a From header.

    Headers may carry a display name ("Jane Doe <jane@x.com>") so an exact
    comparison would miss most messages.
    """
    if not from_header or not my_address:
        return False
    return my_address.strip().lower() in from_header.lower()


def extract_address(header_value: str) -> str:
    """Bare address from "Name <addr>" style headers; the input when nothing parses"""
    _, address = parseaddr(header_value or "")
    return address or (header_value or "").strip()


def _decode_data(data: str) -> str:
    padded = data + "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(padded).decode("utf-8", errors="replace")


def extract_body(payload: dict[str, Any]) -> str:
    """Prefer text/plain, then text/html, searching nested multiparts"""
    if not payload:
        return ""
    data = (payload.get("body") or {}).get("data")
    if data and not payload.get("parts"):
        return _decode_data(data)

    parts = payload.get("parts") or []
    for mime_type in ("text/plain", "text/html"):
        for part in parts:
            part_data = (part.get("body") or {}).get("data")
            if part.get("mimeType") == mime_type and part_data:
                return _decode_data(part_data)
    for part in parts:
        if part.get("mimeType", "").startswith("multipart/"):
            nested = extract_body(part)
            if nested:
                return nested
    return _decode_data(data) if data else ""


def parse_message(message: dict[str, Any], my_address: str) -> ThreadMessage:
    payload = message.get("payload") or {}
    headers = {h.get("name", "").lower(): h.get("value", "") for h in payload.get("headers") or []}
    sender = headers.get("from", "")
    return ThreadMessage(
        id=message.get("id", ""),
        thread_id=message.get("threadId", ""),
        sender=sender,
        to=headers.get("to", ""),
        subject=headers.get("subject", ""),
        snippet=message.get("snippet", ""),
        body=extract_body(payload),
        date=headers.get("date", ""),
        is_from_me=is_from_me(sender, my_address),
        message_id_header=headers.get("message-id") or None,
    )


class ConversationReconstructor:
    """Reads threads through the user's mailbox connection; nothing is cached"""

    def __init__(self, connections: MailboxConnectionManager):
        self.connections = connections

    async def get_thread(self, user_id: int, thread_id: str) -> list[ThreadMessage]:
        """Raises ReauthRequired or MailboxApiError when the mailbox is unreachable"""
        client = await self.connections.get_client(user_id)
        my_address = self.connections.get_connected_email(user_id)
        thread = await client.get_thread(thread_id)
        return [parse_message(m, my_address) for m in thread.get("messages") or []]

    async def get_reply_stats(self, user_id: int, email: GeneratedEmail) -> ReplyStats:
        if not email.provider_thread_id:
            return ReplyStats()

        messages = await self.get_thread(user_id, email.provider_thread_id)
        # The first message is the outbound draft itself
        replies = messages[1:]
        from_recipient = sum(1 for m in replies if not m.is_from_me)
        return ReplyStats(
            total_messages=len(messages),
            replies_from_recipient=from_recipient,
            replies_from_me=len(replies) - from_recipient,
            unread=from_recipient > 0 and not email.conversation_read,
        )

    async def safe_reply_stats(self, user_id: int, email: GeneratedEmail) -> ReplyStats:
        """Reply counts for optional display; zero when the mailbox can't be read"""
        try:
            return await self.get_reply_stats(user_id, email)
        except (MailboxApiError, ReauthRequired) as e:
            logger.warning(f"⚠️ Reply stats unavailable for email {email.id}: {e.code}")
            return ReplyStats()

    async def list_sent(
        self, user_id: int, max_results: int = 20, page_token: Optional[str] = None
    ) -> tuple[list[ThreadMessage], Optional[str]]:
        """One page of the mailbox's SENT label, full messages"""
        client = await self.connections.get_client(user_id)
        my_address = self.connections.get_connected_email(user_id)
        listing = await client.list_messages(label_ids=["SENT"], max_results=max_results, page_token=page_token)

        messages = []
        for ref in listing.get("messages") or []:
            messages.append(parse_message(await client.get_message(ref["id"]), my_address))
        return messages, listing.get("nextPageToken")
