"""Gmail router - OAuth connect/callback, status and sent-mail listing"""

import logging
from datetime import timedelta
from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Query
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from ... import config
from ...auth import create_access_token, get_current_user, verify_access_token
from ...database import get_db
from ...errors import MailboxApiError
from ...models import User
from ..emails.conversation import ConversationReconstructor
from .connection import MailboxConnectionManager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/gmail", tags=["Gmail"])

OAUTH_STATE_TTL = timedelta(minutes=10)


def get_connection_manager(db: Session = Depends(get_db)) -> MailboxConnectionManager:
    """Dependency injection for MailboxConnectionManager"""
    return MailboxConnectionManager(db)


def _settings_redirect(**params: str) -> RedirectResponse:
    return RedirectResponse(url=f"{config.FRONTEND_URL}/settings?{urlencode(params)}", status_code=302)


@router.get("/connect")
async def connect_gmail(
    current_user: User = Depends(get_current_user),
    manager: MailboxConnectionManager = Depends(get_connection_manager),
):
    """Google consent URL; ``state`` carries the signed user id back to the callback"""
    state = create_access_token(current_user.id, expires_delta=OAUTH_STATE_TTL)
    return {"url": manager.oauth.authorization_url(state=state)}


@router.get("/callback")
async def gmail_callback(
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    error: Optional[str] = Query(None),
    manager: MailboxConnectionManager = Depends(get_connection_manager),
):
    """Google redirects here after consent; always answers with a redirect to settings"""
    if error:
        logger.warning(f"⚠️ Gmail OAuth error: {error}")
        return _settings_redirect(error="gmail_auth_failed")
    if not code:
        return _settings_redirect(error="no_code")

    payload = verify_access_token(state) if state else None
    if not payload or not str(payload.get("sub", "")).isdigit():
        logger.warning("⚠️ Gmail callback with missing or invalid state")
        return _settings_redirect(error="invalid_state")

    user_id = int(payload["sub"])
    try:
        await manager.connect(user_id, code)
    except MailboxApiError as e:
        logger.error(f"❌ Gmail connect failed for user {user_id}: {e.code}")
        return _settings_redirect(error="gmail_connect_failed")

    return _settings_redirect(gmail="connected")


@router.get("/status")
async def gmail_status(
    current_user: User = Depends(get_current_user),
    manager: MailboxConnectionManager = Depends(get_connection_manager),
):
    connection = manager.get_connection(current_user.id)
    return {
        "connected": connection is not None,
        "email": connection.connected_email if connection else None,
    }


@router.delete("/disconnect")
async def disconnect_gmail(
    current_user: User = Depends(get_current_user),
    manager: MailboxConnectionManager = Depends(get_connection_manager),
):
    """Idempotent: succeeds whether or not a connection existed"""
    manager.disconnect(current_user.id)
    return {"success": True}


@router.get("/sent")
async def list_sent_emails(
    max_results: int = Query(20, ge=1, le=100, alias="maxResults"),
    page_token: Optional[str] = Query(None, alias="pageToken"),
    current_user: User = Depends(get_current_user),
    manager: MailboxConnectionManager = Depends(get_connection_manager),
):
    messages, next_page_token = await ConversationReconstructor(manager).list_sent(
        current_user.id, max_results=max_results, page_token=page_token
    )
    return {"messages": [m.to_dict() for m in messages], "nextPageToken": next_page_token}
