"""Email router - FastAPI endpoints for drafts, sending, threads and tracking stats"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...errors import NoThread
from ...models import EmailStatus, User
from ...plans import get_tier
from ..analytics.aggregator import AnalyticsAggregator
from ..mailbox.connection import MailboxConnectionManager
from ..mailbox.router import get_connection_manager
from .conversation import ConversationReconstructor
from .dispatcher import MailDispatcher
from .schemas import (
    EmailCreate,
    EmailDetailResponse,
    EmailListResponse,
    EmailResponse,
    EmailUpdate,
    ReplyRequest,
    ReplyResponse,
    ReplyStatsResponse,
)
from .service import EmailService, to_email_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/emails", tags=["Emails"])


def get_email_service(db: Session = Depends(get_db)) -> EmailService:
    """Dependency injection for EmailService"""
    return EmailService(db)


def get_mail_dispatcher(
    db: Session = Depends(get_db),
    manager: MailboxConnectionManager = Depends(get_connection_manager),
) -> MailDispatcher:
    return MailDispatcher(db, manager)


def get_conversation(
    manager: MailboxConnectionManager = Depends(get_connection_manager),
) -> ConversationReconstructor:
    return ConversationReconstructor(manager)


def get_analytics(db: Session = Depends(get_db)) -> AnalyticsAggregator:
    return AnalyticsAggregator(db)


# ============================================================================
# DRAFTS
# ============================================================================


@router.post("", response_model=EmailResponse, status_code=201)
async def create_email(
    data: EmailCreate,
    current_user: User = Depends(get_current_user),
    service: EmailService = Depends(get_email_service),
):
    """Save a draft (generated or hand-written)"""
    return service.create_email(current_user, data)


@router.get("", response_model=EmailListResponse)
async def list_emails(
    status: Optional[EmailStatus] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100, alias="pageSize"),
    current_user: User = Depends(get_current_user),
    service: EmailService = Depends(get_email_service),
):
    return service.list_emails(current_user, status.value if status else None, page, page_size)


@router.get("/{email_id}", response_model=EmailDetailResponse)
async def get_email(
    email_id: int,
    current_user: User = Depends(get_current_user),
    service: EmailService = Depends(get_email_service),
    conversation: ConversationReconstructor = Depends(get_conversation),
):
    """Draft with reply counts; counts are zero when Gmail can't be reached"""
    email = service.get_email(email_id, current_user)
    response = service.get_email_response(email)

    reply_stats = None
    if email.status == EmailStatus.SENT.value and email.provider_thread_id:
        stats = await conversation.safe_reply_stats(current_user.id, email)
        reply_stats = ReplyStatsResponse(**stats.to_dict())
    return EmailDetailResponse(**response.model_dump(), replyStats=reply_stats)


@router.patch("/{email_id}", response_model=EmailResponse)
async def update_email(
    email_id: int,
    data: EmailUpdate,
    current_user: User = Depends(get_current_user),
    service: EmailService = Depends(get_email_service),
):
    return service.update_email(email_id, current_user, data)


# ============================================================================
# SENDING
# ============================================================================


@router.post("/{email_id}/send", response_model=EmailResponse)
async def send_email(
    email_id: int,
    current_user: User = Depends(get_current_user),
    dispatcher: MailDispatcher = Depends(get_mail_dispatcher),
):
    """Send (or resend a FAILED) draft through the connected Gmail account"""
    email = await dispatcher.send(current_user, email_id)
    return to_email_response(email)


@router.post("/{email_id}/reply", response_model=ReplyResponse)
async def send_reply(
    email_id: int,
    data: ReplyRequest,
    current_user: User = Depends(get_current_user),
    dispatcher: MailDispatcher = Depends(get_mail_dispatcher),
):
    result = await dispatcher.send_reply(current_user, email_id, data.body)
    return ReplyResponse(**result)


# ============================================================================
# CONVERSATION & TRACKING
# ============================================================================


@router.get("/{email_id}/thread")
async def get_thread(
    email_id: int,
    current_user: User = Depends(get_current_user),
    service: EmailService = Depends(get_email_service),
    conversation: ConversationReconstructor = Depends(get_conversation),
):
    """Full Gmail thread; mailbox failures surface as errors here"""
    email = service.get_email(email_id, current_user)
    if not email.provider_thread_id:
        raise NoThread()

    messages = await conversation.get_thread(current_user.id, email.provider_thread_id)
    recipient = email.recipient
    return {
        "email": {
            "id": email.id,
            "subject": email.subject,
            "recipient": {"name": recipient.name, "email": recipient.email, "organization": recipient.organization},
            "sentAt": email.sent_at.isoformat() if email.sent_at else None,
        },
        "thread": {
            "id": email.provider_thread_id,
            "messageCount": len(messages),
            "replyCount": sum(1 for m in messages if not m.is_from_me),
            "messages": [m.to_dict() for m in messages],
        },
    }


@router.post("/{email_id}/read", response_model=EmailResponse)
async def mark_conversation_read(
    email_id: int,
    current_user: User = Depends(get_current_user),
    service: EmailService = Depends(get_email_service),
):
    return service.mark_read(email_id, current_user)


@router.get("/{email_id}/tracking")
async def get_tracking_stats(
    email_id: int,
    current_user: User = Depends(get_current_user),
    service: EmailService = Depends(get_email_service),
    analytics: AnalyticsAggregator = Depends(get_analytics),
):
    """Open/click rollup; detail beyond totals is a PRO entitlement"""
    email = service.get_email(email_id, current_user)
    tier = get_tier(current_user)
    return {
        "emailId": email.id,
        "trackingId": email.tracking_id,
        "tier": tier.value,
        **analytics.summarize(email.id, current_user.id, tier),
    }
