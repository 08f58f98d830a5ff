"""AI router - provider listing and draft/reply generation endpoints"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ... import config
from ...auth import get_current_user
from ...database import get_db
from ...errors import NotFound, UpgradeRequired
from ...models import User
from ...plans import can_generate_email, get_usage_stats, increment_email_usage
from ...rate_limiter import rate_limit_generation
from ..emails.repository import EmailRepository
from .composer import EmailComposer
from .providers import AIProvider, available_providers, resolve_provider
from .schemas import (
    GenerateEmailRequest,
    GenerateEmailResponse,
    GenerateReplyRequest,
    GenerateReplyResponse,
    ProviderInfo,
    ProvidersResponse,
    UsageResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["AI"])

PROVIDER_NAMES = {
    AIProvider.GEMINI: "Google Gemini",
    AIProvider.GROQ: "Groq (Llama 3.3)",
    AIProvider.CLAUDE: "Anthropic Claude",
    AIProvider.CHATGPT: "OpenAI ChatGPT",
}


def get_email_composer(db: Session = Depends(get_db)) -> EmailComposer:
    """Dependency injection for EmailComposer"""
    return EmailComposer(db)


@router.get("/ai/providers", response_model=ProvidersResponse)
async def list_providers(current_user: User = Depends(get_current_user)):
    """Providers with a configured API key, and the one to preselect"""
    providers = available_providers()
    default = None
    if providers:
        preferred = config.DEFAULT_AI_PROVIDER.lower()
        default = preferred if preferred in {p.value for p in providers} else providers[0].value
    return ProvidersResponse(
        providers=[ProviderInfo(id=p.value, name=PROVIDER_NAMES[p]) for p in providers],
        default=default,
    )


@router.get("/ai/usage", response_model=UsageResponse)
async def get_usage(current_user: User = Depends(get_current_user)):
    return UsageResponse(**get_usage_stats(current_user))


@router.post(
    "/emails/generate",
    response_model=GenerateEmailResponse,
    dependencies=[Depends(rate_limit_generation)],
)
async def generate_email(
    data: GenerateEmailRequest,
    current_user: User = Depends(get_current_user),
    composer: EmailComposer = Depends(get_email_composer),
    db: Session = Depends(get_db),
):
    """Generate a draft for a recipient; the result is returned, not stored"""
    allowed, reason = can_generate_email(current_user)
    if not allowed:
        raise UpgradeRequired(reason)

    provider = resolve_provider(data.provider)
    draft = await composer.compose_for_recipient(
        current_user,
        data.recipientId,
        data.purpose,
        data.tone,
        provider,
        data.additionalContext,
    )

    increment_email_usage(current_user, db)
    return GenerateEmailResponse(subject=draft.subject, body=draft.body, provider=provider.value)


@router.post(
    "/emails/{email_id}/generate-reply",
    response_model=GenerateReplyResponse,
    dependencies=[Depends(rate_limit_generation)],
)
async def generate_reply(
    email_id: int,
    data: GenerateReplyRequest,
    current_user: User = Depends(get_current_user),
    composer: EmailComposer = Depends(get_email_composer),
    db: Session = Depends(get_db),
):
    """Draft a follow-up body for an existing conversation"""
    email = EmailRepository.get_email(db, email_id, current_user.id)
    if not email:
        raise NotFound("Email", email_id)

    provider = resolve_provider(data.provider)
    body = await composer.compose_reply(
        current_user,
        email,
        provider,
        tone=data.tone.value if data.tone else None,
        additional_context=data.additionalContext,
    )
    return GenerateReplyResponse(body=body, provider=provider.value)
