"""
Prompt templates for draft and reply generation
"""

from dataclasses import dataclass, field
from typing import Optional

from ...models import EmailPurpose, EmailTone

DOCUMENT_EXCERPT_CHARS = 500

SYSTEM_PROMPT = """You are an expert professional email writer. Your task is to craft compelling, personalized emails that help users make meaningful professional connections. You excel at:

1. Writing personalized opening hooks that reference specific aspects of the recipient's work
2. Clearly articulating the sender's relevant qualifications and genuine interest
3. Creating compelling calls-to-action that encourage responses
4. Maintaining appropriate tone and formality based on context
5. Keeping emails concise yet impactful

IMPORTANT GUIDELINES:
- Always personalize the email based on the recipient's background and work
- Highlight specific overlaps between the sender's experience and recipient's interests
- Be genuine and avoid generic platitudes
- Keep emails between 150-300 words unless more detail is necessary
- Use proper email formatting with clear paragraphs
- Never fabricate or exaggerate the sender's qualifications
- If information is limited, focus on what is known rather than making assumptions
- NEVER use placeholder text like [your field], [specific area], [relevant field/area], etc. Use actual information provided or write generically without brackets.
- NEVER leave any text in square brackets [] in the output

OUTPUT FORMAT:
Return your response as valid JSON with exactly two fields:
- "subject": A compelling email subject line (max 60 characters, no colons at the start)
- "body": The email body in plain text with actual line breaks (not literal \\n characters)

Example format:
{"subject": "Interest in Research Collaboration", "body": "Dear Dr. Smith,

I am writing to express my interest in your research work...

Best regards,
John"}

Do not include any text outside the JSON object. Do not use markdown code blocks."""

REPLY_SYSTEM_PROMPT = (
    "You are an expert professional email writer helping someone continue an email conversation. "
    "Write only the email body in plain text. Never use placeholder text in square brackets."
)

PURPOSE_DESCRIPTIONS = {
    EmailPurpose.JOB_APPLICATION: "Applying for a job or expressing interest in career opportunities at the recipient's organization",
    EmailPurpose.RESEARCH_INQUIRY: "Expressing interest in research collaboration, PhD/postdoc positions, or learning more about the recipient's research",
    EmailPurpose.COLLABORATION: "Proposing a professional collaboration, partnership, or joint project",
    EmailPurpose.MENTORSHIP: "Seeking mentorship, career guidance, or professional advice from the recipient",
    EmailPurpose.NETWORKING: "Building professional connections and expanding network in the industry",
    EmailPurpose.OTHER: "General professional outreach for purposes not covered above",
}

TONE_DESCRIPTIONS = {
    EmailTone.FORMAL: "Professional and formal tone, suitable for senior professionals or academic settings",
    EmailTone.FRIENDLY: "Warm and approachable while maintaining professionalism, good for peers or startup environments",
    EmailTone.CONCISE: "Brief and to-the-point, respecting the recipient's time while still being personable",
    EmailTone.ENTHUSIASTIC: "Energetic and passionate, showing genuine excitement about the opportunity",
}


@dataclass
class DocumentSummary:
    name: str
    type: str
    content: str


@dataclass
class SenderContext:
    name: Optional[str] = None
    headline: Optional[str] = None
    bio: Optional[str] = None
    skills: list[str] = field(default_factory=list)
    interests: list[str] = field(default_factory=list)
    education: list[dict] = field(default_factory=list)
    experience: list[dict] = field(default_factory=list)
    goals: Optional[str] = None
    linkedin_url: Optional[str] = None
    github_url: Optional[str] = None
    portfolio_url: Optional[str] = None
    documents: list[DocumentSummary] = field(default_factory=list)


@dataclass
class RecipientContext:
    name: str
    email: str
    organization: Optional[str] = None
    role: Optional[str] = None
    website: Optional[str] = None
    linkedin_url: Optional[str] = None
    work_focus: Optional[str] = None
    additional_notes: Optional[str] = None


def build_sender_section(sender: SenderContext) -> str:
    sections = []

    if sender.name:
        sections.append(f"Name: {sender.name}")
    if sender.headline:
        sections.append(f"Professional Headline: {sender.headline}")
    if sender.bio:
        sections.append(f"Bio: {sender.bio}")
    if sender.skills:
        sections.append(f"Skills: {', '.join(sender.skills)}")
    if sender.interests:
        sections.append(f"Interests: {', '.join(sender.interests)}")

    if sender.education:
        education = "; ".join(
            f"{e.get('degree', '')} in {e.get('field', '')} from {e.get('institution', '')} ({e.get('year', '')})"
            for e in sender.education
        )
        sections.append(f"Education: {education}")

    if sender.experience:
        experience = "; ".join(
            f"{e.get('role', '')} at {e.get('company', '')} ({e.get('duration', '')}): {e.get('description', '')}"
            for e in sender.experience
        )
        sections.append(f"Experience: {experience}")

    if sender.goals:
        sections.append(f"Goals: {sender.goals}")

    links = []
    if sender.linkedin_url:
        links.append(f"LinkedIn: {sender.linkedin_url}")
    if sender.github_url:
        links.append(f"GitHub: {sender.github_url}")
    if sender.portfolio_url:
        links.append(f"Portfolio: {sender.portfolio_url}")
    if links:
        sections.append(f"Links: {', '.join(links)}")

    if sender.documents:
        # Document type is labelled without brackets; brackets are reserved for placeholders
        docs = "\n\n".join(
            f"({d.type}) {d.name}: {d.content[:DOCUMENT_EXCERPT_CHARS]}..." for d in sender.documents
        )
        sections.append(f"Relevant Documents:\n{docs}")

    return "\n\n".join(sections)


def build_recipient_section(recipient: RecipientContext) -> str:
    """Optional fields that are empty are omitted entirely"""
    sections = [f"Name: {recipient.name}", f"Email: {recipient.email}"]

    if recipient.organization:
        sections.append(f"Organization: {recipient.organization}")
    if recipient.role:
        sections.append(f"Role/Position: {recipient.role}")
    if recipient.work_focus:
        sections.append(f"Research/Work Focus: {recipient.work_focus}")
    if recipient.website:
        sections.append(f"Website: {recipient.website}")
    if recipient.linkedin_url:
        sections.append(f"LinkedIn: {recipient.linkedin_url}")
    if recipient.additional_notes:
        sections.append(f"Additional Notes: {recipient.additional_notes}")

    return "\n".join(sections)


def build_email_prompt(
    sender: SenderContext,
    recipient: RecipientContext,
    purpose: EmailPurpose,
    tone: EmailTone,
    additional_context: Optional[str] = None,
) -> str:
    parts = [
        "Generate a professional email with the following context:",
        f"## Email Purpose\n{PURPOSE_DESCRIPTIONS[purpose]}",
        f"## Desired Tone\n{TONE_DESCRIPTIONS[tone]}",
        f"## Sender's Background\n{build_sender_section(sender)}",
        f"## Recipient's Information\n{build_recipient_section(recipient)}",
    ]
    if additional_context and additional_context.strip():
        parts.append(f"## Additional Context\n{additional_context.strip()}")

    parts.append(
        "Please generate a compelling, personalized email that:\n"
        "1. Opens with a personalized hook referencing the recipient's work or background\n"
        "2. Clearly states the purpose of the email\n"
        "3. Highlights relevant qualifications and experience from the sender\n"
        "4. Shows genuine interest and alignment with the recipient's work\n"
        "5. Ends with a clear, appropriate call-to-action\n\n"
        'Return the response as JSON with "subject" and "body" fields only.'
    )
    return "\n\n".join(parts)


def build_reply_prompt(
    original_subject: str,
    original_body: str,
    recipient: RecipientContext,
    sender_name: Optional[str] = None,
    sender_headline: Optional[str] = None,
    tone: Optional[str] = None,
    additional_context: Optional[str] = None,
) -> str:
    recipient_lines = [f"- Name: {recipient.name}", f"- Email: {recipient.email}"]
    if recipient.organization:
        recipient_lines.append(f"- Organization: {recipient.organization}")

    parts = [
        "You are helping someone write a professional email reply.",
        f"ORIGINAL EMAIL SENT:\nTo: {recipient.name} ({recipient.email})\nSubject: {original_subject}\nBody:\n{original_body}",
        "RECIPIENT INFORMATION:\n" + "\n".join(recipient_lines),
    ]

    sender_lines = [f"- Name: {sender_name or 'User'}"]
    if sender_headline:
        sender_lines.append(f"- Title: {sender_headline}")
    parts.append("SENDER INFORMATION:\n" + "\n".join(sender_lines))

    if additional_context and additional_context.strip():
        parts.append(f"ADDITIONAL CONTEXT:\n{additional_context.strip()}")

    parts.append(
        "REQUIREMENTS:\n"
        f"- Write a {(tone or 'professional').lower()} follow-up reply\n"
        "- Be concise and to the point\n"
        "- Don't include a subject line, just the body\n"
        "- Don't use placeholder text like [Your Name] - write a complete reply\n"
        f'- Start directly with the greeting (e.g., "Hi {recipient.name}," or "Dear {recipient.name},")\n'
        "- End with appropriate sign-off using the sender's name\n\n"
        "Write only the email body, nothing else."
    )
    return "\n\n".join(parts)
