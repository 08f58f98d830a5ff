"""
Pytest configuration and shared fixtures for the outreach API tests
"""

import base64
import email
import json
import os

import httpx
from cryptography.fernet import Fernet

# Settings are read once at import; pin them before any outreach module loads
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("ENCRYPTION_KEY", Fernet.generate_key().decode())
os.environ.setdefault("APP_BASE_URL", "https://api.example.com")
os.environ.setdefault("FRONTEND_URL", "https://app.example.com")
os.environ.setdefault("DB_LOG_SLOW_QUERIES", "false")

from datetime import datetime, timedelta  # noqa: E402
from typing import Optional  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from outreach import config  # noqa: E402
from outreach.auth import create_access_token  # noqa: E402
from outreach.database import Base, get_db  # noqa: E402
from outreach.domain.mailbox.vault import get_vault  # noqa: E402
from outreach.models import GeneratedEmail, MailboxConnection, Profile, Recipient, User  # noqa: E402


@pytest.fixture
def db():
    """Fresh in-memory database per test"""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def vault():
    """The process vault, so records written here decrypt inside routes too"""
    return get_vault()


@pytest.fixture
def user(db):
    user = User(email="ada@example.com", name="Ada Lovelace", free_emails_used=0)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def pro_user(db):
    user = User(
        email="grace@example.com",
        name="Grace Hopper",
        subscription_status="active",
        current_period_end=datetime.utcnow() + timedelta(days=30),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def profile(db, user):
    profile = Profile(
        user_id=user.id,
        headline="PhD student in computational linguistics",
        bio="I build parsers.",
        skills=["Python", "NLP"],
        interests=["grammar induction"],
        education=[{"institution": "MIT", "degree": "BSc", "field": "CS", "year": "2022"}],
        experience=[],
    )
    db.add(profile)
    db.commit()
    return profile


@pytest.fixture
def recipient(db, user):
    recipient = Recipient(
        user_id=user.id,
        name="Dr. Alan Turing",
        email="alan@university.edu",
        organization="University of Manchester",
        role="Professor",
        work_focus="Computability",
    )
    db.add(recipient)
    db.commit()
    db.refresh(recipient)
    return recipient


@pytest.fixture
def make_draft(db, user, recipient):
    def _make(**overrides) -> GeneratedEmail:
        fields = {
            "user_id": user.id,
            "recipient_id": recipient.id,
            "subject": "Research collaboration",
            "body": "Dear Dr. Turing,\n\nI enjoyed your paper.\n\nBest,\nAda",
            "tone": "FORMAL",
            "purpose": "RESEARCH_INQUIRY",
            "status": "DRAFT",
            "attached_document_ids": [],
        }
        fields.update(overrides)
        email = GeneratedEmail(**fields)
        db.add(email)
        db.commit()
        db.refresh(email)
        return email

    return _make


@pytest.fixture
def make_connection(db, vault):
    def _make(user_id: int, expires_in: timedelta = timedelta(hours=1), email: str = "ada@example.com"):
        connection = MailboxConnection(
            user_id=user_id,
            access_token=vault.encrypt("access-1"),
            refresh_token=vault.encrypt("refresh-1"),
            token_expires_at=datetime.utcnow() + expires_in,
            connected_email=email,
        )
        db.add(connection)
        db.commit()
        db.refresh(connection)
        return connection

    return _make


@pytest.fixture
def configured_providers(monkeypatch):
    """All four provider keys set"""
    monkeypatch.setattr(config, "GOOGLE_GEMINI_API_KEY", "gemini-test-key")
    monkeypatch.setattr(config, "GROQ_API_KEY", "groq-test-key")
    monkeypatch.setattr(config, "ANTHROPIC_API_KEY", "anthropic-test-key")
    monkeypatch.setattr(config, "OPENAI_API_KEY", "openai-test-key")


@pytest.fixture
def app(db):
    from outreach.main import app
    from outreach.rate_limiter import MemoryRateLimiter, get_rate_limiter

    limiter = MemoryRateLimiter(limit=config.GENERATION_RATE_LIMIT, window_seconds=config.GENERATION_RATE_WINDOW_SECONDS)

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_rate_limiter] = lambda: limiter
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def auth_headers(user):
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


def gmail_message(
    message_id: str,
    thread_id: str,
    sender: str,
    to: str,
    body: str,
    subject: str = "Research collaboration",
    rfc_message_id: Optional[str] = None,
) -> dict:
    """A Gmail API message resource in ``format=full`` shape"""
    headers = [
        {"name": "From", "value": sender},
        {"name": "To", "value": to},
        {"name": "Subject", "value": subject},
        {"name": "Date", "value": "Mon, 6 Jan 2025 10:00:00 +0000"},
    ]
    if rfc_message_id:
        headers.append({"name": "Message-ID", "value": rfc_message_id})
    return {
        "id": message_id,
        "threadId": thread_id,
        "snippet": body[:40],
        "payload": {
            "mimeType": "multipart/alternative",
            "headers": headers,
            "parts": [
                {
                    "mimeType": "text/html",
                    "body": {"data": base64.urlsafe_b64encode(f"<p>{body}</p>".encode()).decode().rstrip("=")},
                },
                {
                    "mimeType": "text/plain",
                    "body": {"data": base64.urlsafe_b64encode(body.encode()).decode().rstrip("=")},
                },
            ],
        },
    }


class FakeGmail:
    """In-memory Gmail REST API behind an httpx.MockTransport"""

    def __init__(self):
        self.sent: list[dict] = []
        self.threads: dict[str, list[dict]] = {}
        self.send_status = 200
        self.thread_status = 200

    def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path.replace("/gmail/v1/users/me", "")

        if request.method == "POST" and path == "/messages/send":
            if self.send_status != 200:
                return httpx.Response(self.send_status, json={"error": {"message": "send failed"}})
            body = json.loads(request.content)
            self.sent.append(body)
            thread_id = body.get("threadId") or f"thread-{len(self.sent)}"
            return httpx.Response(200, json={"id": f"msg-{len(self.sent)}", "threadId": thread_id})

        if request.method == "GET" and path.startswith("/threads/"):
            if self.thread_status != 200:
                return httpx.Response(self.thread_status, json={})
            thread_id = path.rsplit("/", 1)[-1]
            if thread_id not in self.threads:
                return httpx.Response(404, json={})
            return httpx.Response(200, json={"id": thread_id, "messages": self.threads[thread_id]})

        if request.method == "GET" and path == "/messages":
            refs = [{"id": m["id"], "threadId": m["threadId"]} for msgs in self.threads.values() for m in msgs]
            return httpx.Response(200, json={"messages": refs, "nextPageToken": "next-page"})

        if request.method == "GET" and path.startswith("/messages/"):
            message_id = path.rsplit("/", 1)[-1]
            for msgs in self.threads.values():
                for m in msgs:
                    if m["id"] == message_id:
                        return httpx.Response(200, json=m)
            return httpx.Response(404, json={})

        return httpx.Response(404, json={})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    def sent_message(self, index: int = -1):
        raw = self.sent[index]["raw"]
        return email.message_from_bytes(base64.urlsafe_b64decode(raw + "=" * (-len(raw) % 4)))


@pytest.fixture
def gmail():
    return FakeGmail()


@pytest.fixture
def connections(db, vault, gmail):
    """Connection manager whose Gmail calls go to the fake"""
    from outreach.domain.mailbox.connection import MailboxConnectionManager

    return MailboxConnectionManager(db, vault=vault, transport=gmail.transport)
