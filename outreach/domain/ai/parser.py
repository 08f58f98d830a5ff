"""
AI response parsing
Recovers a {subject, body} draft from free-text model output
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Optional

from ...errors import UnparsableResponse

logger = logging.getLogger(__name__)

SUBJECT_MAX_LENGTH = 100

_FENCE_RE = re.compile(r"```(?:json)?\s*", re.IGNORECASE)
_JSON_BLOCK_RE = re.compile(r"\{[\s\S]*\}")

# Regex extraction for JSON-ish output that json.loads rejects
_SUBJECT_FIELD_RE = re.compile(r'"subject"\s*:\s*"((?:[^"\\]|\\.)*)"', re.IGNORECASE)
# Greedy: the body ends at the LAST `"}` so a literal `}` inside the body survives
_BODY_FIELD_RE = re.compile(r'"body"\s*:\s*"([\s\S]*)"\s*\}', re.IGNORECASE)
_BODY_OPEN_RE = re.compile(r'"body"\s*:\s*"([\s\S]*)$', re.IGNORECASE)

# Plain-text markers
_SUBJECT_MARKER_RE = re.compile(
    r"^\s*(?:\*\*)?subject(?:\*\*)?\s*:\s*(?:\*\*)?\s*[\"']?(.+?)[\"']?\s*$",
    re.IGNORECASE | re.MULTILINE,
)
_BODY_MARKER_RE = re.compile(
    r"^\s*(?:\*\*)?body(?:\*\*)?\s*:\s*(?:\*\*)?\s*([\s\S]+)$",
    re.IGNORECASE | re.MULTILINE,
)
_SALUTATION_RE = re.compile(r"^\s*((?:Dear|Hi|Hello)\s[\s\S]+)$", re.MULTILINE)

_NOISE_CHARS = "\"'{}[]"
_PLACEHOLDER_RE = re.compile(r"\[[^\[\]]*\]")


@dataclass
class ParsedEmail:
    subject: str
    body: str

    def to_dict(self) -> dict:
        return {"subject": self.subject, "body": self.body}


def strip_placeholders(text: str) -> str:
    """Remove [placeholder] text, innermost first, then any unmatched bracket"""
    previous = None
    while text != previous:
        previous = text
        text = _PLACEHOLDER_RE.sub("", text)
    return text.replace("[", "").replace("]", "")


def clean_subject(subject: str) -> str:
    subject = re.sub(r"^[:：\s]+", "", subject)
    subject = subject.replace("\\n", " ").replace('\\"', '"')
    subject = strip_placeholders(subject)
    return subject.strip()


def clean_body(body: str) -> str:
    """Normalize escapes, drop [placeholder] text and excess blank lines"""
    body = (
        body.replace("\\n\\n", "\n\n")
        .replace("\\n", "\n")
        .replace("\\r", "")
        .replace("\\t", "\t")
        .replace('\\"', '"')
    )
    body = strip_placeholders(body)
    body = re.sub(r"\n{3,}", "\n\n", body)
    return body.strip()


def clean_email_output(subject: str, body: str) -> ParsedEmail:
    return ParsedEmail(subject=clean_subject(subject), body=clean_body(body))


def strip_code_fences(text: str) -> str:
    return _FENCE_RE.sub("", text).replace("```", "").strip()


class ResponseParser:
    """
    Turns raw model text into a ParsedEmail.

    Strategies are tried in order and the first that yields both a subject
    and a body wins. Only when every strategy comes up empty is
    UnparsableResponse raised.
    """

    def parse(self, text: Optional[str]) -> ParsedEmail:
        if not text or not text.strip():
            raise UnparsableResponse()

        logger.debug(f"AI response to parse: {text[:1000]}")
        clean_text = strip_code_fences(text)
        json_match = _JSON_BLOCK_RE.search(clean_text)
        json_block = json_match.group(0) if json_match else None

        strategies = (
            ("direct_json", lambda: self._parse_json(json_block, strict=True)),
            ("reescaped_json", lambda: self._parse_json(json_block, strict=False)),
            ("field_regex", lambda: self._extract_fields(json_block or clean_text)),
            ("text_markers", lambda: self._extract_markers(clean_text)),
            ("first_line", lambda: self._split_first_line(clean_text)),
        )

        for name, strategy in strategies:
            result = strategy()
            if result:
                subject, body = result
                parsed = clean_email_output(subject, body)
                if parsed.subject and parsed.body:
                    if name != "direct_json":
                        logger.info(f"🔧 AI response recovered via {name}")
                    return parsed

        logger.error(f"❌ Could not parse AI response: {text[:200]}")
        raise UnparsableResponse()

    @staticmethod
    def _parse_json(block: Optional[str], strict: bool) -> Optional[tuple[str, str]]:
        # strict=False accepts raw newlines/tabs inside string values
        if not block:
            return None
        try:
            data = json.loads(block, strict=strict)
        except ValueError as e:
            logger.debug(f"JSON parse (strict={strict}) failed: {e}")
            return None

        if not isinstance(data, dict):
            return None
        subject, body = data.get("subject"), data.get("body")
        if isinstance(subject, str) and isinstance(body, str) and subject and body:
            return subject, body
        return None

    @staticmethod
    def _extract_fields(text: str) -> Optional[tuple[str, str]]:
        subject_match = _SUBJECT_FIELD_RE.search(text)
        if not subject_match:
            return None

        body_match = _BODY_FIELD_RE.search(text)
        if body_match:
            body = body_match.group(1)
        else:
            # Truncated output: take everything after the opening quote
            open_match = _BODY_OPEN_RE.search(text)
            if not open_match:
                return None
            body = re.sub(r'"\s*\}?\s*$', "", open_match.group(1))

        if not body.strip():
            return None
        return subject_match.group(1), body

    @staticmethod
    def _extract_markers(text: str) -> Optional[tuple[str, str]]:
        subject_match = _SUBJECT_MARKER_RE.search(text)
        if not subject_match:
            return None

        body_match = _BODY_MARKER_RE.search(text) or _SALUTATION_RE.search(text)
        if not body_match:
            return None

        body = body_match.group(1).strip()
        body = re.sub(r"^[\"']|[\"']$", "", body)
        body = re.sub(r"\}\s*$", "", body).strip()
        return subject_match.group(1).strip(), body

    @staticmethod
    def _split_first_line(text: str) -> Optional[tuple[str, str]]:
        lines = [line for line in text.split("\n") if line.strip()]
        if len(lines) < 2:
            return None

        subject = strip_placeholders(lines[0]).strip().strip(_NOISE_CHARS).strip()[:SUBJECT_MAX_LENGTH]
        body = strip_placeholders("\n".join(lines[1:])).strip().strip(_NOISE_CHARS).strip()
        return subject, body


_default_parser = ResponseParser()


def parse_ai_response(text: Optional[str]) -> ParsedEmail:
    return _default_parser.parse(text)


def clean_reply_text(text: Optional[str]) -> str:
    """Post-process a generated reply body (no subject line expected)"""
    if not text or not text.strip():
        raise UnparsableResponse()
    body = clean_body(strip_code_fences(text))
    if not body:
        raise UnparsableResponse()
    return body
