"""
Tracking instrumentation
Injects the open pixel and routes links through the click redirect
"""

import base64
import html
import re
import secrets
from urllib.parse import urlencode

from ... import config

OPEN_TRACKING_PATH = "/track/open"
CLICK_TRACKING_PATH = "/track/click"

# 1x1 transparent GIF
TRACKING_PIXEL = base64.b64decode("R0lGODlhAQABAIAAAAAAAP///yH5BAEAAAAALAAAAAABAAEAAAIBRAA7")

_HREF_RE = re.compile(r"""href\s*=\s*(["'])(.*?)\1""", re.IGNORECASE | re.DOTALL)
_UNTRACKED_PREFIXES = ("mailto:", "tel:", "#")
_URL_RE = re.compile(r"https?://[^\s<>\"']*[^\s<>\"'.,;:!?)]")


def generate_tracking_id() -> str:
    return secrets.token_hex(16)


def tracking_pixel_url(tracking_id: str) -> str:
    return f"{config.APP_BASE_URL}{OPEN_TRACKING_PATH}?{urlencode({'tid': tracking_id})}"


def tracked_link_url(tracking_id: str, original_url: str) -> str:
    return f"{config.APP_BASE_URL}{CLICK_TRACKING_PATH}?{urlencode({'tid': tracking_id, 'url': original_url})}"


def inject_tracking_pixel(html_body: str, tracking_id: str) -> str:
    pixel = (
        f'<img src="{html.escape(tracking_pixel_url(tracking_id))}" width="1" height="1" '
        'style="display:none;visibility:hidden;" alt="" />'
    )
    # Before the closing tags when present
    lowered = html_body.lower()
    for closing in ("</body>", "</html>"):
        index = lowered.rfind(closing)
        if index != -1:
            return f"{html_body[:index]}{pixel}{html_body[index:]}"
    return html_body + pixel


def wrap_links_with_tracking(html_body: str, tracking_id: str) -> str:
    def replace(match: re.Match) -> str:
        quote, raw_url = match.group(1), match.group(2)
        url = html.unescape(raw_url).strip()
        if not url or url.lower().startswith(_UNTRACKED_PREFIXES) or CLICK_TRACKING_PATH + "?" in url:
            return match.group(0)
        return f"href={quote}{html.escape(tracked_link_url(tracking_id, url))}{quote}"

    return _HREF_RE.sub(replace, html_body)


def instrument(html_body: str, tracking_id: str) -> str:
    """Rewrite links first so the pixel URL is never wrapped"""
    return inject_tracking_pixel(wrap_links_with_tracking(html_body, tracking_id), tracking_id)


def body_to_html(body: str) -> str:
    """Plain-text paragraphs to HTML; bare URLs become links so clicks are tracked"""
    paragraphs = []
    for paragraph in body.split("\n\n"):
        if not paragraph.strip():
            continue
        escaped = html.escape(paragraph.strip("\n"), quote=False)
        linked = _URL_RE.sub(lambda m: f'<a href="{m.group(0)}">{m.group(0)}</a>', escaped)
        paragraphs.append("<p>" + linked.replace("\n", "<br>") + "</p>")
    return "".join(paragraphs)
