from __future__ import annotations

from typing import Iterable

from fastapi import HTTPException, status

from agency_billing.models.enums import Role


BILLING_MANAGER_ROLES = frozenset({Role.SUPER_ADMIN, Role.ADMIN, Role.PROJECT_MANAGER})


def user_has_any_role(user, roles: Iterable[Role]) -> bool:
    return user.role in set(roles)


def is_client(user) -> bool:
    return user.role == Role.CLIENT


def require_roles(user, required_roles: Iterable[Role]) -> None:
    if not user_has_any_role(user, required_roles):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorised for this billing action")
