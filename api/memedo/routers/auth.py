# api/memedo/routers/auth.py
from fastapi import APIRouter, Depends

from ..deps.current_user import current_user
from ..models import User
from ..responses import ok
from ..schemas import UserOut
from ..services import subscription

router = APIRouter(prefix="/auth", tags=["auth"])


@router.get("/me")
def me(user: User = Depends(current_user)):
    """
    Local profile for the signed-in Firebase user.
    Frontend uses this for account/profile/premium status.
    """
    data = UserOut.model_validate(user).model_dump()
    data["is_admin"] = user.is_admin
    data["is_premium"] = subscription.is_premium(user)
    return ok(data)
