"""
api/routes/waitlist.py -- Public waitlist sign-up for properties that are not live yet.

Routes:
  POST /api/waitlist            -- join; idempotent per (email, service)
  GET  /api/waitlist?service=   -- number of sign-ups for one property

No authentication: the landing pages of the downstream properties call these
directly. userId is optional and only links a sign-up to an existing account.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from api.models import WaitlistCountResponse, WaitlistJoin, WaitlistJoinResponse
from core.errors import ValidationError
from core.properties import Property
from waitlist.models import WaitlistEntry

logger = logging.getLogger("exploree.api.waitlist")

router = APIRouter()


@router.post("/waitlist", response_model=WaitlistJoinResponse, response_model_exclude_none=True)
def join_waitlist(request: Request, body: WaitlistJoin) -> JSONResponse:
    """Add (email, service) to the waitlist.

    201 with the new id on first sign-up; 200 with alreadyExists on repeats.
    """
    entry, created = request.app.state.waitlist_store.join(
        WaitlistEntry(email=body.email, service=body.service, name=body.name, user_id=body.user_id)
    )
    if not created:
        resp = WaitlistJoinResponse(message="Already on waitlist", already_exists=True)
        return JSONResponse(status_code=200, content=resp.model_dump(by_alias=True, exclude_none=True))

    logger.info("Waitlist sign-up %s for %s", entry.id, entry.service.value)
    resp = WaitlistJoinResponse(message="Successfully added to waitlist", id=entry.id)
    return JSONResponse(status_code=201, content=resp.model_dump(by_alias=True, exclude_none=True))


@router.get("/waitlist", response_model=WaitlistCountResponse)
def waitlist_count(request: Request, service: Optional[str] = None) -> WaitlistCountResponse:
    if not service:
        raise ValidationError("Service parameter is required.", code="missing_service")
    try:
        parsed = Property(service)
    except ValueError:
        raise ValidationError(
            f"Unknown service '{service}'.",
            code="invalid_service",
            detail={"allowed": [s.value for s in Property]},
        ) from None
    return WaitlistCountResponse(service=parsed, count=request.app.state.waitlist_store.count(parsed))
