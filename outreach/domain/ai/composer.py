"""
Email composer
Builds the prompt, dispatches to the selected provider and parses the draft
"""

import logging
from typing import Any, Callable, Optional

import httpx
from sqlalchemy.orm import Session

from ...errors import GenerationFailure, NotFound, OutreachError
from ...models import EmailPurpose, EmailTone, GeneratedEmail, User
from .parser import ParsedEmail, ResponseParser, clean_reply_text
from .prompts import (
    REPLY_SYSTEM_PROMPT,
    SYSTEM_PROMPT,
    DocumentSummary,
    RecipientContext,
    SenderContext,
    build_email_prompt,
    build_reply_prompt,
)
from .providers import AIProvider, ProviderClient, get_provider_client
from .repository import GenerationRepository

logger = logging.getLogger(__name__)


class EmailComposer:
    """Service layer for AI draft generation"""

    def __init__(
        self,
        db: Session,
        parser: Optional[ResponseParser] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.db = db
        self.repo = GenerationRepository()
        self.parser = parser or ResponseParser()
        self.transport = transport

    # ------------------------------------------------------------------
    # Context
    # ------------------------------------------------------------------

    def load_sender_context(self, user: User) -> SenderContext:
        profile = self.repo.get_profile(self.db, user.id)
        documents = [
            DocumentSummary(name=d.name, type=d.type, content=d.extracted_text or "")
            for d in self.repo.get_documents_with_text(self.db, user.id)
        ]
        if not profile:
            return SenderContext(name=user.name, documents=documents)

        return SenderContext(
            name=user.name,
            headline=profile.headline,
            bio=profile.bio,
            skills=profile.skills or [],
            interests=profile.interests or [],
            education=profile.education if isinstance(profile.education, list) else [],
            experience=profile.experience if isinstance(profile.experience, list) else [],
            goals=profile.goals,
            linkedin_url=profile.linkedin_url,
            github_url=profile.github_url,
            portfolio_url=profile.portfolio_url,
            documents=documents,
        )

    def load_recipient_context(self, recipient_id: int, user: User) -> RecipientContext:
        recipient = self.repo.get_recipient(self.db, recipient_id, user.id)
        if not recipient:
            raise NotFound("Recipient", recipient_id)
        return RecipientContext(
            name=recipient.name,
            email=recipient.email,
            organization=recipient.organization,
            role=recipient.role,
            website=recipient.website,
            linkedin_url=recipient.linkedin_url,
            work_focus=recipient.work_focus,
            additional_notes=recipient.additional_notes,
        )

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    async def _complete(
        self,
        client: ProviderClient,
        user_id: int,
        system_prompt: str,
        prompt: str,
        finish: Callable[[str], Any],
    ):
        """One provider attempt, accounted as a success only once its output is usable"""
        try:
            result = finish(await client.generate(system_prompt, prompt))
        except OutreachError as e:
            self.repo.record_usage(self.db, user_id, client.provider.value, client.model, False, e.message)
            raise
        self.repo.record_usage(self.db, user_id, client.provider.value, client.model, True)
        return result

    async def compose(
        self,
        user_id: int,
        sender: SenderContext,
        recipient: RecipientContext,
        purpose: EmailPurpose,
        tone: EmailTone,
        provider: AIProvider,
        additional_context: Optional[str] = None,
    ) -> ParsedEmail:
        """Generate a {subject, body} draft; raises GenerationFailure"""
        prompt = build_email_prompt(sender, recipient, purpose, tone, additional_context)
        logger.info(f"🤖 Generating {purpose.value}/{tone.value} draft for user {user_id} via {provider.value}")

        try:
            client = get_provider_client(provider, transport=self.transport)
            return await self._complete(client, user_id, SYSTEM_PROMPT, prompt, self.parser.parse)
        except OutreachError as e:
            logger.warning(f"⚠️ Draft generation failed for user {user_id}: {e.code}")
            raise GenerationFailure(e) from e

    async def compose_for_recipient(
        self,
        user: User,
        recipient_id: int,
        purpose: EmailPurpose,
        tone: EmailTone,
        provider: AIProvider,
        additional_context: Optional[str] = None,
    ) -> ParsedEmail:
        sender = self.load_sender_context(user)
        recipient = self.load_recipient_context(recipient_id, user)
        return await self.compose(user.id, sender, recipient, purpose, tone, provider, additional_context)

    async def compose_reply(
        self,
        user: User,
        email: GeneratedEmail,
        provider: AIProvider,
        tone: Optional[str] = None,
        additional_context: Optional[str] = None,
    ) -> str:
        """Generate a follow-up body for an existing draft's conversation"""
        recipient = self.load_recipient_context(email.recipient_id, user)
        profile = self.repo.get_profile(self.db, user.id)
        prompt = build_reply_prompt(
            original_subject=email.subject,
            original_body=email.body,
            recipient=recipient,
            sender_name=user.name,
            sender_headline=profile.headline if profile else None,
            tone=tone,
            additional_context=additional_context,
        )

        try:
            client = get_provider_client(provider, transport=self.transport)
            return await self._complete(client, user.id, REPLY_SYSTEM_PROMPT, prompt, clean_reply_text)
        except OutreachError as e:
            logger.warning(f"⚠️ Reply generation failed for email {email.id}: {e.code}")
            raise GenerationFailure(e) from e
