"""Email domain schemas - Pydantic models for drafts, sending and replies"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ...models import EmailPurpose, EmailTone


class RecipientSummary(BaseModel):
    id: int
    name: str
    email: str
    organization: Optional[str] = None


class EmailCreate(BaseModel):
    """Schema for saving a draft"""

    recipientId: int
    subject: str = Field(..., min_length=1, max_length=500)
    body: str = Field(..., min_length=1)
    tone: EmailTone = EmailTone.FORMAL
    purpose: EmailPurpose = EmailPurpose.OTHER
    attachedDocumentIds: list[int] = []


class EmailUpdate(BaseModel):
    """Schema for editing an unsent draft"""

    subject: Optional[str] = Field(None, min_length=1, max_length=500)
    body: Optional[str] = Field(None, min_length=1)
    attachedDocumentIds: Optional[list[int]] = None


class EmailResponse(BaseModel):
    id: int
    recipientId: int
    recipient: Optional[RecipientSummary] = None
    subject: str
    body: str
    tone: str
    purpose: str
    status: str
    attachedDocumentIds: list[int]
    trackingId: Optional[str] = None
    providerMessageId: Optional[str] = None
    providerThreadId: Optional[str] = None
    errorMessage: Optional[str] = None
    sentAt: Optional[datetime] = None
    conversationRead: bool = False
    createdAt: Optional[datetime] = None
    openCount: int = 0
    clickCount: int = 0


class EmailListResponse(BaseModel):
    emails: list[EmailResponse]
    total: int
    page: int
    pageSize: int


class ReplyRequest(BaseModel):
    body: str

    @field_validator("body")
    @classmethod
    def validate_body(cls, v):
        if not v or not v.strip():
            raise ValueError("Reply body is required")
        return v


class ReplyResponse(BaseModel):
    success: bool
    messageId: Optional[str] = None
    threadId: Optional[str] = None


class ReplyStatsResponse(BaseModel):
    total_messages: int
    replies_from_recipient: int
    replies_from_me: int
    unread: bool


class EmailDetailResponse(EmailResponse):
    replyStats: Optional[ReplyStatsResponse] = None
