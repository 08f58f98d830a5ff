"""AI domain schemas - Pydantic models for generation requests"""

from typing import Optional

from pydantic import BaseModel, Field

from ...models import EmailPurpose, EmailTone


class ProviderInfo(BaseModel):
    id: str
    name: str


class ProvidersResponse(BaseModel):
    providers: list[ProviderInfo]
    default: Optional[str] = None


class GenerateEmailRequest(BaseModel):
    """Schema for generating a new draft"""

    recipientId: int
    purpose: EmailPurpose
    tone: EmailTone = EmailTone.FORMAL
    provider: Optional[str] = None
    additionalContext: Optional[str] = Field(None, max_length=2000)


class GenerateEmailResponse(BaseModel):
    subject: str
    body: str
    provider: str


class GenerateReplyRequest(BaseModel):
    provider: Optional[str] = None
    tone: Optional[EmailTone] = None
    additionalContext: Optional[str] = Field(None, max_length=2000)


class GenerateReplyResponse(BaseModel):
    body: str
    provider: str


class UsageResponse(BaseModel):
    """Free-allowance usage; limit and remaining are null on PRO"""

    tier: str
    limit: Optional[int] = None
    used: int
    remaining: Optional[int] = None
