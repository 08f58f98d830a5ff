import enum

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


class EmailStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    SENT = "SENT"
    FAILED = "FAILED"


class EmailPurpose(str, enum.Enum):
    JOB_APPLICATION = "JOB_APPLICATION"
    RESEARCH_INQUIRY = "RESEARCH_INQUIRY"
    COLLABORATION = "COLLABORATION"
    MENTORSHIP = "MENTORSHIP"
    NETWORKING = "NETWORKING"
    OTHER = "OTHER"


class EmailTone(str, enum.Enum):
    FORMAL = "FORMAL"
    FRIENDLY = "FRIENDLY"
    CONCISE = "CONCISE"
    ENTHUSIASTIC = "ENTHUSIASTIC"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=True)
    # Written by the billing collaborator (Stripe/PayPal webhooks)
    subscription_status = Column(String(50), nullable=True)  # active, past_due, cancelled
    current_period_end = Column(DateTime, nullable=True)
    free_emails_used = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    profile = relationship("Profile", back_populates="user", uselist=False)
    recipients = relationship("Recipient", back_populates="user")
    documents = relationship("Document", back_populates="user")
    emails = relationship("GeneratedEmail", back_populates="user")
    mailbox_connection = relationship("MailboxConnection", back_populates="user", uselist=False)


class Profile(Base):
    __tablename__ = "profiles"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    headline = Column(String(255), nullable=True)
    bio = Column(Text, nullable=True)
    skills = Column(JSON, default=list)
    interests = Column(JSON, default=list)
    # [{"institution", "degree", "field", "year"}]
    education = Column(JSON, default=list)
    # [{"company", "role", "duration", "description"}]
    experience = Column(JSON, default=list)
    goals = Column(Text, nullable=True)
    linkedin_url = Column(String(500), nullable=True)
    github_url = Column(String(500), nullable=True)
    portfolio_url = Column(String(500), nullable=True)

    user = relationship("User", back_populates="profile")


class Recipient(Base):
    __tablename__ = "recipients"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False)
    organization = Column(String(255), nullable=True)
    role = Column(String(255), nullable=True)
    website = Column(String(500), nullable=True)
    linkedin_url = Column(String(500), nullable=True)
    work_focus = Column(Text, nullable=True)
    additional_notes = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    user = relationship("User", back_populates="recipients")


class Document(Base):
    __tablename__ = "documents"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    type = Column(String(50), nullable=False)  # RESUME, COVER_LETTER, PORTFOLIO, OTHER
    mime_type = Column(String(255), nullable=True)
    file_path = Column(String(500), nullable=False)  # Relative to UPLOAD_DIR
    extracted_text = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    user = relationship("User", back_populates="documents")


class GeneratedEmail(Base):
    """An outreach draft; DRAFT -> SENT once, FAILED drafts may be resent"""

    __tablename__ = "generated_emails"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    recipient_id = Column(Integer, ForeignKey("recipients.id"), nullable=False, index=True)
    subject = Column(String(500), nullable=False)
    body = Column(Text, nullable=False)
    tone = Column(String(20), default=EmailTone.FORMAL.value, nullable=False)
    purpose = Column(String(30), default=EmailPurpose.OTHER.value, nullable=False)
    status = Column(String(20), default=EmailStatus.DRAFT.value, nullable=False, index=True)
    attached_document_ids = Column(JSON, default=list)
    tracking_id = Column(String(64), unique=True, index=True, nullable=True)
    provider_message_id = Column(String(255), nullable=True)
    provider_thread_id = Column(String(255), nullable=True)
    error_message = Column(Text, nullable=True)
    sent_at = Column(DateTime, nullable=True)
    conversation_read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="emails")
    recipient = relationship("Recipient")
    opens = relationship("EmailOpen", back_populates="email", order_by="EmailOpen.opened_at")
    clicks = relationship("LinkClick", back_populates="email", order_by="LinkClick.clicked_at")


class EmailOpen(Base):
    """Append-only open event recorded by the tracking pixel"""

    __tablename__ = "email_opens"

    id = Column(Integer, primary_key=True, index=True)
    email_id = Column(Integer, ForeignKey("generated_emails.id"), nullable=False, index=True)
    ip_address = Column(String(100), nullable=False)
    user_agent = Column(Text, nullable=False)
    opened_at = Column(DateTime, server_default=func.now(), nullable=False)

    email = relationship("GeneratedEmail", back_populates="opens")


class LinkClick(Base):
    """Append-only click event recorded by the redirect endpoint"""

    __tablename__ = "link_clicks"

    id = Column(Integer, primary_key=True, index=True)
    email_id = Column(Integer, ForeignKey("generated_emails.id"), nullable=False, index=True)
    original_url = Column(Text, nullable=False)
    ip_address = Column(String(100), nullable=False)
    user_agent = Column(Text, nullable=False)
    clicked_at = Column(DateTime, server_default=func.now(), nullable=False)

    email = relationship("GeneratedEmail", back_populates="clicks")


class AIUsage(Base):
    """One row per generation attempt, for billing and abuse review"""

    __tablename__ = "ai_usage"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    provider = Column(String(20), nullable=False)
    model = Column(String(100), nullable=False)
    success = Column(Boolean, nullable=False)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())


class MailboxConnection(Base):
    """Gmail OAuth connection; both tokens are Fernet ciphertexts"""

    __tablename__ = "mailbox_connections"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, unique=True)

    # OAuth tokens (encrypted)
    access_token = Column(Text, nullable=False)
    refresh_token = Column(Text, nullable=False)
    token_expires_at = Column(DateTime, nullable=False)

    connected_email = Column(String(255), nullable=False)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="mailbox_connection")
