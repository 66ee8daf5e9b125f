import logging
from typing import Optional
from fastapi import Depends, Header, HTTPException, status
from jose import JWTError, jwt

from storefront.config import settings
from storefront.domain.models import Requester, UserRole
from storefront.domain.exceptions import ForbiddenError
from storefront.domain.policies import ensure_admin

logger = logging.getLogger(__name__)


def create_access_token(user_id: str, role: UserRole = UserRole.USER) -> str:
    return jwt.encode(
        {"sub": user_id, "role": role.value},
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM
    )


def decode_token(token: str) -> Requester:
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
        return Requester(id=payload["sub"], role=UserRole(payload.get("role", UserRole.USER.value)))
    except (JWTError, KeyError, ValueError) as e:
        logger.warning(f"Недействительный токен: {e}")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Недействительный токен")


async def get_current_user(authorization: Optional[str] = Header(default=None)) -> Requester:
    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Требуется авторизация")
    return decode_token(authorization.split(" ", 1)[1].strip())


async def require_admin(requester: Requester = Depends(get_current_user)) -> Requester:
    try:
        ensure_admin(requester)
    except ForbiddenError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    return requester
