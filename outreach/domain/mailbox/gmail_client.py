"""
Gmail API and Google OAuth clients
Thin httpx wrappers; failures surface as MailboxApiError with a typed kind
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional
from urllib.parse import urlencode

import httpx

from ... import config
from ...errors import MailboxApiError, MailboxErrorKind

logger = logging.getLogger(__name__)

# Google OAuth URLs
GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"  # noqa: S105 - OAuth endpoint URL
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"
GMAIL_API = "https://gmail.googleapis.com/gmail/v1/users/me"

GMAIL_SCOPES = [
    "https://www.googleapis.com/auth/gmail.send",
    "https://www.googleapis.com/auth/gmail.compose",
    "https://www.googleapis.com/auth/gmail.readonly",
    "https://www.googleapis.com/auth/userinfo.email",
]

# OAuth error codes meaning the grant itself is dead, not a transient fault
REJECTED_GRANT_ERRORS = {"invalid_grant", "unauthorized_client", "invalid_client"}


@dataclass
class OAuthTokens:
    access_token: str
    expires_in: int
    refresh_token: Optional[str] = None


def _error_from_response(response: httpx.Response, action: str) -> MailboxApiError:
    kind = MailboxErrorKind.from_status(response.status_code)
    if response.status_code == 400:
        try:
            error_code = response.json().get("error")
        except ValueError:
            error_code = None
        if isinstance(error_code, str) and error_code in REJECTED_GRANT_ERRORS:
            kind = MailboxErrorKind.UNAUTHORIZED
    logger.error(f"❌ {action} failed with HTTP {response.status_code} ({kind.value})")
    return MailboxApiError(kind, f"{action} failed", upstream_status=response.status_code)


class GoogleOAuthClient:
    """Authorization-code exchange, refresh and account lookup"""

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None, timeout: float = config.HTTP_TIMEOUT_SECONDS):
        self.transport = transport
        self.timeout = timeout

    def authorization_url(self, state: Optional[str] = None) -> str:
        params = {
            "client_id": config.GOOGLE_CLIENT_ID,
            "redirect_uri": config.GOOGLE_REDIRECT_URI,
            "response_type": "code",
            "scope": " ".join(GMAIL_SCOPES),
            "access_type": "offline",
            "prompt": "consent",
        }
        if state:
            params["state"] = state
        return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"

    async def _post_token(self, data: dict, action: str) -> OAuthTokens:
        payload = {"client_id": config.GOOGLE_CLIENT_ID, "client_secret": config.GOOGLE_CLIENT_SECRET, **data}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(GOOGLE_TOKEN_URL, data=payload)
        except httpx.HTTPError as e:
            logger.error(f"❌ {action} transport error: {e}")
            raise MailboxApiError(MailboxErrorKind.NETWORK, f"{action} failed: {e.__class__.__name__}") from e

        if response.status_code != 200:
            raise _error_from_response(response, action)

        tokens = response.json()
        access_token = tokens.get("access_token")
        if not access_token:
            logger.error(f"❌ No access token in {action} response")
            raise MailboxApiError(MailboxErrorKind.BAD_REQUEST, f"{action} returned no access token", 200)

        return OAuthTokens(
            access_token=access_token,
            expires_in=int(tokens.get("expires_in", 3600)),
            refresh_token=tokens.get("refresh_token"),
        )

    async def exchange_code(self, code: str) -> OAuthTokens:
        return await self._post_token(
            {"code": code, "redirect_uri": config.GOOGLE_REDIRECT_URI, "grant_type": "authorization_code"},
            "Authorization code exchange",
        )

    async def refresh(self, refresh_token: str) -> OAuthTokens:
        return await self._post_token(
            {"refresh_token": refresh_token, "grant_type": "refresh_token"},
            "Token refresh",
        )

    async def get_user_email(self, access_token: str) -> Optional[str]:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.get(GOOGLE_USERINFO_URL, headers={"Authorization": f"Bearer {access_token}"})
        except httpx.HTTPError as e:
            raise MailboxApiError(MailboxErrorKind.NETWORK, "User info lookup failed") from e

        if response.status_code != 200:
            raise _error_from_response(response, "User info lookup")
        return response.json().get("email")


class GmailClient:
    """Gmail REST calls for one access token"""

    def __init__(
        self,
        access_token: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = config.HTTP_TIMEOUT_SECONDS,
    ):
        self.access_token = access_token
        self.transport = transport
        self.timeout = timeout

    async def _request(self, method: str, path: str, action: str, **kwargs) -> dict[str, Any]:
        headers = {"Authorization": f"Bearer {self.access_token}"}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.request(method, f"{GMAIL_API}{path}", headers=headers, **kwargs)
        except httpx.TimeoutException as e:
            logger.warning(f"⏱️ Gmail {action} timed out after {self.timeout}s")
            raise MailboxApiError(MailboxErrorKind.NETWORK, f"Gmail {action} timed out") from e
        except httpx.HTTPError as e:
            logger.error(f"❌ Gmail {action} transport error: {e}")
            raise MailboxApiError(MailboxErrorKind.NETWORK, f"Gmail {action} failed") from e

        if response.status_code not in (200, 204):
            raise _error_from_response(response, f"Gmail {action}")
        return response.json() if response.content else {}

    async def send_raw(self, raw: str, thread_id: Optional[str] = None) -> dict[str, Any]:
        """Send a base64url-encoded RFC 822 message; returns {id, threadId, ...}"""
        body: dict[str, Any] = {"raw": raw}
        if thread_id:
            body["threadId"] = thread_id
        return await self._request("POST", "/messages/send", "send", json=body)

    async def get_thread(self, thread_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/threads/{thread_id}", "thread fetch", params={"format": "full"})

    async def list_messages(
        self, label_ids: Optional[list[str]] = None, max_results: int = 20, page_token: Optional[str] = None
    ) -> dict[str, Any]:
        params: dict[str, Any] = {"maxResults": max_results}
        if label_ids:
            params["labelIds"] = label_ids
        if page_token:
            params["pageToken"] = page_token
        return await self._request("GET", "/messages", "message list", params=params)

    async def get_message(self, message_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/messages/{message_id}", "message fetch", params={"format": "full"})
