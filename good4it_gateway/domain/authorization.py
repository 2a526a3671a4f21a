"""Role resolution for lifecycle operations

Roles are resolved once per loaded entity and then checked per operation,
instead of comparing actor ids against stored references at each call site.
"""

from enum import Enum
from typing import FrozenSet, Union

from good4it_gateway.domain.exceptions import AuthorizationError
from good4it_gateway.domain.models import MoneyRequest, MoneyTransaction, Task


class Role(str, Enum):
    LENDER = "lender"
    REQUESTOR = "requestor"
    ASSIGNED_BY = "assigned_by"
    ASSIGNED_TO = "assigned_to"


def roles_for(entity: Union[MoneyRequest, MoneyTransaction, Task], user_id: str) -> FrozenSet[Role]:
    """Roles ``user_id`` holds on a request, transaction or task"""
    roles = set()
    if isinstance(entity, Task):
        if entity.assigned_by == user_id:
            roles.add(Role.ASSIGNED_BY)
        if entity.assigned_to == user_id:
            roles.add(Role.ASSIGNED_TO)
    else:
        if entity.lender_id == user_id:
            roles.add(Role.LENDER)
        if entity.requestor_id == user_id:
            roles.add(Role.REQUESTOR)
    return frozenset(roles)


_ROLE_CODES = {
    Role.LENDER: "NOT_LENDER",
    Role.REQUESTOR: "NOT_REQUESTOR",
    Role.ASSIGNED_BY: "NOT_ASSIGNED_BY",
    Role.ASSIGNED_TO: "NOT_ASSIGNED_TO",
}


def require_role(
    entity: Union[MoneyRequest, MoneyTransaction, Task],
    user_id: str,
    role: Role,
    message: str,
) -> None:
    """
    Raise AuthorizationError unless ``user_id`` holds ``role`` on ``entity``.

    The error code names the missing role (``NOT_LENDER``, ``NOT_ASSIGNED_TO``, ...).
    """
    if role not in roles_for(entity, user_id):
        raise AuthorizationError(message, code=_ROLE_CODES[role])


def require_party(entity: Union[MoneyRequest, MoneyTransaction, Task], user_id: str, message: str) -> None:
    """Raise AuthorizationError unless the user holds any role on the entity"""
    if not roles_for(entity, user_id):
        raise AuthorizationError(message, code="NOT_A_PARTY")
