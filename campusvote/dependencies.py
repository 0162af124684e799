"""FastAPI dependencies: storage, feed, clock and the calling principal."""

import logging
from datetime import datetime
from typing import Optional

from fastapi import Depends, HTTPException, Request
from starlette.requests import HTTPConnection
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError

from campusvote.exceptions import Forbidden, Unavailable
from campusvote.security import Principal, decode_access_token
from campusvote.services.feed import ActivityFeed
from campusvote.storage_mongo import MongoStorage

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def get_storage(request: Request) -> MongoStorage:
    storage = request.app.state.storage
    if storage is None:
        raise Unavailable("Database not initialized", operation="get_storage")
    return storage


def get_feed(request: HTTPConnection) -> ActivityFeed:
    feed = request.app.state.feed
    if feed is None:
        raise Unavailable("Activity feed not initialized", operation="get_feed")
    return feed


def get_now(request: Request) -> datetime:
    return request.app.state.clock()


def get_current_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Principal:
    if credentials is None:
        raise HTTPException(
            status_code=401, detail="Not authenticated", headers={"WWW-Authenticate": "Bearer"}
        )
    try:
        return decode_access_token(credentials.credentials)
    except JWTError as e:
        logger.info(f"Rejected bearer token: {e}")
        raise HTTPException(
            status_code=401, detail="Invalid or expired token.", headers={"WWW-Authenticate": "Bearer"}
        )


def require_admin(principal: Principal = Depends(get_current_principal)) -> Principal:
    if not principal.is_admin:
        raise Forbidden("Administrator access required.", {"user_id": principal.user_id})
    return principal
