from storefront.domain.models import Requester
from storefront.domain.exceptions import ForbiddenError


def can_access(requester: Requester, owner_id: str) -> bool:
    """Доступ к ресурсу есть у администратора и у владельца"""
    return requester.is_admin or requester.id == owner_id


def ensure_can_access(requester: Requester, owner_id: str) -> None:
    if not can_access(requester, owner_id):
        raise ForbiddenError("Нет доступа")


def ensure_admin(requester: Requester) -> None:
    if not requester.is_admin:
        raise ForbiddenError("Требуются права администратора")
