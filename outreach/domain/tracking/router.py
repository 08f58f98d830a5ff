"""Tracking router - open pixel and click redirect (public, unauthenticated)"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import RedirectResponse, Response
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ... import config
from ...database import get_db
from ..emails.repository import EmailRepository
from ..emails.tracking import TRACKING_PIXEL

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/track", tags=["Tracking"])

PIXEL_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, proxy-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


def get_client_ip(request: Request) -> str:
    """First X-Forwarded-For hop, then X-Real-IP, then the socket peer"""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop
    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()
    return request.client.host if request.client else "unknown"


def _pixel_response() -> Response:
    return Response(content=TRACKING_PIXEL, media_type="image/gif", headers=PIXEL_HEADERS)


@router.get("/open")
async def track_open(
    request: Request,
    tid: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    """Always answers with the pixel; a broken image would be visible to the reader"""
    if not tid:
        return _pixel_response()

    try:
        email = EmailRepository.get_by_tracking_id(db, tid)
        if email:
            EmailRepository.record_open(
                db, email.id, get_client_ip(request), request.headers.get("User-Agent", "unknown")
            )
            logger.info(f"👁️ Open recorded for email {email.id}")
        else:
            logger.debug(f"Open pixel hit for unknown tracking id {tid}")
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"❌ Failed to record open for {tid}: {e}")

    return _pixel_response()


@router.get("/click")
async def track_click(
    request: Request,
    tid: Optional[str] = Query(None),
    url: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    """Record the click, then always redirect to the original link"""
    if not url:
        return RedirectResponse(url=config.FRONTEND_URL, status_code=302)

    if tid:
        try:
            email = EmailRepository.get_by_tracking_id(db, tid)
            if email:
                EmailRepository.record_click(
                    db, email.id, url, get_client_ip(request), request.headers.get("User-Agent", "unknown")
                )
                logger.info(f"🔗 Click recorded for email {email.id}")
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"❌ Failed to record click for {tid}: {e}")

    return RedirectResponse(url=url, status_code=302)
