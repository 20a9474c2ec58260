"""Role-based access decisions over an authenticated principal.

Role identifiers are the bare names below everywhere: in tokens, in the
database and in the API. There is no framework-specific prefix scheme.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum


class Role(str, Enum):
    USER = "USER"
    ADMIN = "ADMIN"


DEFAULT_ROLE = Role.USER
KNOWN_ROLES = frozenset(role.value for role in Role)


@dataclass(frozen=True)
class Principal:
    """Identity attached to a request by the auth gate.

    Roles come from the token claims, not from storage.
    """

    username: str
    roles: frozenset[str]
    token: str = field(repr=False)

    @classmethod
    def from_claims(cls, username: str, roles: Iterable[str], token: str) -> "Principal":
        return cls(username=username, roles=frozenset(roles), token=token)

    @property
    def is_admin(self) -> bool:
        return Role.ADMIN.value in self.roles


def primary_role(roles: Iterable[str]) -> str:
    """First assigned role, or the default role when none are assigned."""
    for role in roles:
        return str(role)
    return DEFAULT_ROLE.value


def require_role(principal: Principal, role: Role | str) -> bool:
    """True iff the principal holds ``role``. Unknown role names never match."""
    value = role.value if isinstance(role, Role) else str(role)
    return value in KNOWN_ROLES and value in principal.roles


def require_self_or_role(
    principal: Principal,
    resource_owner_username: str | None,
    role: Role | str = Role.ADMIN,
) -> bool:
    """True iff the principal owns the resource or holds ``role``."""
    if resource_owner_username is not None and principal.username == resource_owner_username:
        return True
    return require_role(principal, role)
