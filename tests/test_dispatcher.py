"""Tests for sending drafts, replying in threads and reading conversations."""

from datetime import timedelta

import pytest
from conftest import gmail_message

from outreach import config
from outreach.domain.emails.conversation import (
    ConversationReconstructor,
    extract_address,
    extract_body,
    is_from_me,
)
from outreach.domain.emails.dispatcher import MailDispatcher
from outreach.errors import AlreadySent, NoThread, NotFound, ReauthRequired, TransportError
from outreach.models import Document, EmailStatus


@pytest.fixture
def dispatcher(db, connections, tmp_path, monkeypatch):
    monkeypatch.setattr(config, "UPLOAD_DIR", str(tmp_path))
    return MailDispatcher(db, connections)


def thread_for(thread_id: str, *replies: tuple[str, str]) -> list[dict]:
    """Outbound message followed by (sender, body) replies"""
    messages = [
        gmail_message(
            "msg-1", thread_id, "Ada Lovelace <ada@example.com>", "alan@university.edu", "Dear Dr. Turing",
            rfc_message_id="<first@example.com>",
        )
    ]
    for index, (sender, body) in enumerate(replies, start=2):
        messages.append(
            gmail_message(f"msg-{index}", thread_id, sender, "ada@example.com", body, rfc_message_id=f"<m{index}@mail>")
        )
    return messages


class TestSend:
    """DRAFT | FAILED -> SENT | FAILED."""

    @pytest.mark.asyncio
    async def test_send_marks_draft_sent(self, db, user, make_draft, make_connection, dispatcher, gmail) -> None:
        make_connection(user.id)
        draft = make_draft(body="Dear Dr. Turing,\n\nMy site: https://ada.dev\n\nBest,\nAda")

        email = await dispatcher.send(user, draft.id)

        assert email.status == EmailStatus.SENT.value
        assert email.sent_at is not None
        assert email.provider_message_id == "msg-1"
        assert email.provider_thread_id == "thread-1"
        assert len(email.tracking_id) == 32

        message = gmail.sent_message()
        assert message["To"] == "alan@university.edu"
        assert message["From"] == "ada@example.com"
        assert message["Subject"] == "Research collaboration"
        html_body = message.get_payload(decode=True).decode()
        assert f"/track/open?tid={email.tracking_id}" in html_body
        assert "/track/click?tid=" in html_body
        assert "<p>Dear Dr. Turing,</p>" in html_body

    @pytest.mark.asyncio
    async def test_already_sent_never_reaches_gmail(self, user, make_draft, make_connection, dispatcher, gmail) -> None:
        make_connection(user.id)
        draft = make_draft(status=EmailStatus.SENT.value)

        with pytest.raises(AlreadySent):
            await dispatcher.send(user, draft.id)
        assert gmail.sent == []

    @pytest.mark.asyncio
    async def test_failure_then_resend(self, db, user, make_draft, make_connection, dispatcher, gmail) -> None:
        make_connection(user.id)
        draft = make_draft()

        gmail.send_status = 503
        with pytest.raises(TransportError) as exc_info:
            await dispatcher.send(user, draft.id)
        assert exc_info.value.retryable is True

        db.refresh(draft)
        assert draft.status == EmailStatus.FAILED.value
        assert draft.error_message
        failed_tracking_id = draft.tracking_id
        assert failed_tracking_id

        gmail.send_status = 200
        email = await dispatcher.send(user, draft.id)
        assert email.status == EmailStatus.SENT.value
        assert email.error_message is None
        assert email.tracking_id == failed_tracking_id

    @pytest.mark.asyncio
    async def test_rejected_send_is_not_retryable(self, user, make_draft, make_connection, dispatcher, gmail) -> None:
        make_connection(user.id)
        draft = make_draft()
        gmail.send_status = 400

        with pytest.raises(TransportError) as exc_info:
            await dispatcher.send(user, draft.id)
        assert exc_info.value.retryable is False

    @pytest.mark.asyncio
    async def test_not_connected_leaves_draft_untouched(self, db, user, make_draft, dispatcher, gmail) -> None:
        draft = make_draft()

        with pytest.raises(ReauthRequired):
            await dispatcher.send(user, draft.id)

        db.refresh(draft)
        assert draft.status == EmailStatus.DRAFT.value
        assert draft.tracking_id is None
        assert gmail.sent == []

    @pytest.mark.asyncio
    async def test_other_users_draft_is_not_found(self, user, pro_user, make_draft, make_connection, dispatcher) -> None:
        make_connection(pro_user.id, email="grace@example.com")
        draft = make_draft()

        with pytest.raises(NotFound):
            await dispatcher.send(pro_user, draft.id)


class TestAttachments:
    @pytest.mark.asyncio
    async def test_documents_are_attached(self, db, user, make_draft, make_connection, dispatcher, gmail, tmp_path) -> None:
        make_connection(user.id)
        (tmp_path / "cv.pdf").write_bytes(b"%PDF-1.4 resume")
        document = Document(user_id=user.id, name="Ada CV.pdf", type="RESUME", mime_type="application/pdf", file_path="cv.pdf")
        db.add(document)
        db.commit()
        draft = make_draft(attached_document_ids=[document.id])

        await dispatcher.send(user, draft.id)

        message = gmail.sent_message()
        assert message.get_content_type() == "multipart/mixed"
        attachment = message.get_payload()[1]
        assert attachment.get_filename() == "Ada CV.pdf"
        assert attachment.get_payload(decode=True) == b"%PDF-1.4 resume"

    @pytest.mark.asyncio
    async def test_missing_file_fails_before_sending(self, db, user, make_draft, make_connection, dispatcher, gmail) -> None:
        make_connection(user.id)
        document = Document(user_id=user.id, name="gone.pdf", type="OTHER", file_path="gone.pdf")
        db.add(document)
        db.commit()
        draft = make_draft(attached_document_ids=[document.id])

        with pytest.raises(NotFound):
            await dispatcher.send(user, draft.id)
        assert gmail.sent == []

    @pytest.mark.asyncio
    async def test_paths_outside_upload_dir_are_refused(self, db, user, make_draft, make_connection, dispatcher, gmail) -> None:
        make_connection(user.id)
        document = Document(user_id=user.id, name="passwd", type="OTHER", file_path="../../etc/passwd")
        db.add(document)
        db.commit()
        draft = make_draft(attached_document_ids=[document.id])

        with pytest.raises(NotFound):
            await dispatcher.send(user, draft.id)


class TestReply:
    @pytest.mark.asyncio
    async def test_reply_to_recipient_message(self, user, make_draft, make_connection, dispatcher, gmail) -> None:
        make_connection(user.id)
        draft = make_draft(status="SENT", provider_message_id="msg-1", provider_thread_id="t-1")
        gmail.threads["t-1"] = thread_for("t-1", ("Alan Turing <alan@university.edu>", "Happy to chat"))

        result = await dispatcher.send_reply(user, draft.id, "Great, how about Tuesday?")

        assert result["success"] is True
        assert result["threadId"] == "t-1"
        assert gmail.sent[-1]["threadId"] == "t-1"
        message = gmail.sent_message()
        assert message["To"] == "alan@university.edu"
        assert message["Subject"] == "Re: Research collaboration"
        assert message["In-Reply-To"] == "<m2@mail>"

    @pytest.mark.asyncio
    async def test_follow_up_when_latest_is_mine(self, user, make_draft, make_connection, dispatcher, gmail) -> None:
        make_connection(user.id)
        draft = make_draft(status="SENT", provider_message_id="msg-1", provider_thread_id="t-1")
        gmail.threads["t-1"] = thread_for("t-1")

        await dispatcher.send_reply(user, draft.id, "Just following up.")

        message = gmail.sent_message()
        assert message["To"] == "alan@university.edu"
        assert message["In-Reply-To"] == "<first@example.com>"

    @pytest.mark.asyncio
    async def test_draft_without_thread(self, user, make_draft, make_connection, dispatcher) -> None:
        make_connection(user.id)
        draft = make_draft()
        with pytest.raises(NoThread):
            await dispatcher.send_reply(user, draft.id, "Hello")

    @pytest.mark.asyncio
    async def test_reply_transport_failure(self, user, make_draft, make_connection, dispatcher, gmail) -> None:
        make_connection(user.id)
        draft = make_draft(status="SENT", provider_message_id="msg-1", provider_thread_id="t-1")
        gmail.threads["t-1"] = thread_for("t-1")
        gmail.send_status = 500

        with pytest.raises(TransportError):
            await dispatcher.send_reply(user, draft.id, "Hello again")


class TestConversationHelpers:
    @pytest.mark.parametrize(
        "header, expected",
        [
            ("Ada Lovelace <ada@example.com>", True),
            ("ADA@EXAMPLE.COM", True),
            ('"Lovelace, Ada" <ada@example.com>', True),
            ("Alan Turing <alan@university.edu>", False),
            ("", False),
        ],
    )
    def test_is_from_me(self, header: str, expected: bool) -> None:
        assert is_from_me(header, "ada@example.com") is expected

    def test_extract_address(self) -> None:
        assert extract_address("Alan Turing <alan@university.edu>") == "alan@university.edu"
        assert extract_address("alan@university.edu") == "alan@university.edu"

    def test_extract_body_prefers_plain_text(self) -> None:
        payload = gmail_message("m", "t", "a@b.com", "c@d.com", "plain words")["payload"]
        assert extract_body(payload) == "plain words"

    def test_extract_body_nested_multipart(self) -> None:
        inner = gmail_message("m", "t", "a@b.com", "c@d.com", "nested words")["payload"]
        payload = {"mimeType": "multipart/mixed", "parts": [inner, {"mimeType": "application/pdf", "body": {}}]}
        assert extract_body(payload) == "nested words"


class TestReplyStats:
    @pytest.mark.asyncio
    async def test_counts_replies_excluding_first_message(self, user, make_draft, make_connection, connections, gmail) -> None:
        make_connection(user.id)
        draft = make_draft(status="SENT", provider_message_id="msg-1", provider_thread_id="t-1")
        gmail.threads["t-1"] = thread_for(
            "t-1",
            ("Alan Turing <alan@university.edu>", "Sounds good"),
            ("Ada Lovelace <ada@example.com>", "Great"),
            ("alan@university.edu", "See you then"),
        )

        stats = await ConversationReconstructor(connections).get_reply_stats(user.id, draft)

        assert stats.total_messages == 4
        assert stats.replies_from_recipient == 2
        assert stats.replies_from_me == 1
        assert stats.unread is True

    @pytest.mark.asyncio
    async def test_read_conversation_is_not_unread(self, user, make_draft, make_connection, connections, gmail) -> None:
        make_connection(user.id)
        draft = make_draft(status="SENT", provider_thread_id="t-1", conversation_read=True)
        gmail.threads["t-1"] = thread_for("t-1", ("alan@university.edu", "Yes"))

        stats = await ConversationReconstructor(connections).get_reply_stats(user.id, draft)
        assert stats.replies_from_recipient == 1
        assert stats.unread is False

    @pytest.mark.asyncio
    async def test_no_thread_is_zero(self, user, make_draft, connections) -> None:
        stats = await ConversationReconstructor(connections).get_reply_stats(user.id, make_draft())
        assert stats.to_dict() == {"total_messages": 0, "replies_from_recipient": 0, "replies_from_me": 0, "unread": False}

    @pytest.mark.asyncio
    async def test_unreachable_mailbox_is_zero(self, user, make_draft, make_connection, connections, gmail) -> None:
        make_connection(user.id)
        draft = make_draft(status="SENT", provider_thread_id="t-1")
        gmail.thread_status = 500

        stats = await ConversationReconstructor(connections).safe_reply_stats(user.id, draft)
        assert stats.total_messages == 0

    @pytest.mark.asyncio
    async def test_disconnected_mailbox_is_zero(self, user, make_draft, connections) -> None:
        draft = make_draft(status="SENT", provider_thread_id="t-1")
        stats = await ConversationReconstructor(connections).safe_reply_stats(user.id, draft)
        assert stats.replies_from_recipient == 0


class TestListSent:
    @pytest.mark.asyncio
    async def test_lists_full_messages(self, user, make_connection, connections, gmail) -> None:
        make_connection(user.id, expires_in=timedelta(hours=2))
        gmail.threads["t-1"] = thread_for("t-1")

        messages, next_page = await ConversationReconstructor(connections).list_sent(user.id, max_results=5)

        assert next_page == "next-page"
        assert [m.id for m in messages] == ["msg-1"]
        assert messages[0].is_from_me is True
        assert messages[0].to_dict()["from"] == "Ada Lovelace <ada@example.com>"
