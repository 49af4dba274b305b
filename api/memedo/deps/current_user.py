# api/memedo/deps/current_user.py
from typing import Optional

import structlog
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from .. import crud
from ..db import get_db
from ..errors import UnauthorizedError
from ..models import User
from ..services.firebase import verify_id_token
from ..util import utcnow

logger = structlog.get_logger(__name__)

bearer = HTTPBearer(auto_error=False)


def current_user(
    creds: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
    db: Session = Depends(get_db),
) -> User:
    """
    Strict auth:
      - Requires a valid Firebase ID token
      - Ensures a local User row exists (auto-create on first sight)
      - Keeps email/display name in sync with the token claims
    """
    if not creds or not creds.scheme.lower().startswith("bearer"):
        raise UnauthorizedError("Missing Bearer token")

    claims = verify_id_token(creds.credentials)
    if not isinstance(claims, dict) or not claims.get("uid"):
        raise UnauthorizedError("Invalid or expired token")

    uid = claims["uid"]
    email = (claims.get("email") or "").lower() or None
    display_name = claims.get("name")

    user = crud.get_user_by_firebase_uid(db, uid)
    if not user:
        user = User(firebase_uid=uid, email=email, display_name=display_name)
        db.add(user)
        db.commit()
        db.refresh(user)
        logger.info("user created", user_id=user.id)
        return user

    changed = False
    if email and user.email != email:
        user.email = email
        changed = True
    if display_name and user.display_name != display_name:
        user.display_name = display_name
        changed = True
    if changed:
        user.updated_at = utcnow()
        db.commit()
        db.refresh(user)

    return user
