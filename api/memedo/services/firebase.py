# api/memedo/services/firebase.py
import json
from typing import Optional

import firebase_admin
import structlog
from firebase_admin import auth as fb_auth, credentials as fb_credentials
from firebase_admin.exceptions import FirebaseError

from ..settings import settings

logger = structlog.get_logger(__name__)

_initialized = False


def _ensure_init() -> bool:
    """
    Initialise the Firebase Admin SDK once, using either:

    - FIREBASE_SERVICE_ACCOUNT_JSON (recommended in production), or
    - default credentials (for local dev if you have them configured).

    Returns False when the SDK could not be initialised; auth then fails closed.
    """
    global _initialized
    if _initialized:
        return True

    if not firebase_admin._apps:
        svc_json = settings.FIREBASE_SERVICE_ACCOUNT_JSON
        try:
            if svc_json:
                cred = fb_credentials.Certificate(json.loads(svc_json))
            else:
                cred = fb_credentials.ApplicationDefault()
            firebase_admin.initialize_app(cred)
        except (ValueError, OSError) as e:
            logger.error("firebase init failed", error=repr(e))
            return False

    _initialized = True
    return True


def verify_id_token(id_token: str) -> Optional[dict]:
    """Decoded claims, or None if the token is invalid or Firebase is unavailable."""
    if not id_token or not _ensure_init():
        return None
    try:
        return fb_auth.verify_id_token(id_token)
    except (ValueError, FirebaseError) as e:
        logger.info("id token rejected", error=type(e).__name__)
        return None
