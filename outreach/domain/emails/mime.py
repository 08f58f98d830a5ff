"""
Outgoing MIME messages for the Gmail send API
"""

import base64
import mimetypes
from dataclasses import dataclass
from email import encoders
from email.header import Header
from email.mime.base import MIMEBase
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formatdate, make_msgid
from typing import Optional, Union


@dataclass
class Attachment:
    filename: str
    content: bytes
    mime_type: Optional[str] = None

    @property
    def content_type(self) -> tuple[str, str]:
        mime_type = self.mime_type or mimetypes.guess_type(self.filename)[0] or "application/octet-stream"
        maintype, _, subtype = mime_type.partition("/")
        return maintype, subtype or "octet-stream"


def reply_subject(subject: str) -> str:
    if subject.strip().lower().startswith("re:"):
        return subject
    return f"Re: {subject}"


def _encode_subject(subject: str) -> Union[str, Header]:
    try:
        subject.encode("ascii")
        return subject
    except UnicodeEncodeError:
        return Header(subject, "utf-8")


def build_message(
    sender: str,
    to: str,
    subject: str,
    html_body: str,
    attachments: Optional[list[Attachment]] = None,
    in_reply_to: Optional[str] = None,
) -> MIMEBase:
    """
    text/html when there are no attachments, multipart/mixed otherwise.
    ``in_reply_to`` threads the message under an earlier one.
    """
    html_part = MIMEText(html_body, "html", "utf-8")

    if attachments:
        msg = MIMEMultipart("mixed")
        msg.attach(html_part)
        for attachment in attachments:
            maintype, subtype = attachment.content_type
            part = MIMEBase(maintype, subtype)
            part.set_payload(attachment.content)
            encoders.encode_base64(part)
            part.add_header("Content-Disposition", "attachment", filename=attachment.filename)
            msg.attach(part)
    else:
        msg = html_part

    msg["From"] = sender
    msg["To"] = to
    msg["Subject"] = _encode_subject(subject)
    msg["Date"] = formatdate(localtime=False, usegmt=True)
    msg["Message-ID"] = make_msgid(domain=sender.rsplit("@", 1)[-1].strip(">") or None)
    if "MIME-Version" not in msg:
        msg["MIME-Version"] = "1.0"

    if in_reply_to:
        msg["In-Reply-To"] = in_reply_to
        msg["References"] = in_reply_to

    return msg


def encode_raw(message: MIMEBase) -> str:
    """base64url without padding, as the Gmail ``raw`` field expects"""
    return base64.urlsafe_b64encode(message.as_bytes()).decode("ascii").rstrip("=")
