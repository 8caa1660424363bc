"""
Grant-holding identities.

A principal is exactly one of a user, a directory group, or a distribution
list. The set is closed: every function here dispatches over all three kinds
and ends in ``assert_never`` so a new kind shows up in the type checker at
every site that needs to handle it.
"""
from dataclasses import dataclass, field
from typing import Union, assert_never

from rcaccess.features.permissions.models import PrincipalType


@dataclass(frozen=True)
class UserPrincipal:
    username: str


@dataclass(frozen=True)
class GroupPrincipal:
    identifier: str
    display_name: str = field(default="", compare=False)


@dataclass(frozen=True)
class DistributionListPrincipal:
    identifier: str
    display_name: str = field(default="", compare=False)


Principal = Union[UserPrincipal, GroupPrincipal, DistributionListPrincipal]


def principal_type(principal: Principal) -> PrincipalType:
    if isinstance(principal, UserPrincipal):
        return PrincipalType.USER
    elif isinstance(principal, GroupPrincipal):
        return PrincipalType.GROUP
    elif isinstance(principal, DistributionListPrincipal):
        return PrincipalType.DISTRIBUTION_LIST
    else:
        assert_never(principal)


def principal_identifier(principal: Principal) -> str:
    """Stored identifier: the username for users, the directory id otherwise."""
    if isinstance(principal, UserPrincipal):
        return principal.username
    elif isinstance(principal, (GroupPrincipal, DistributionListPrincipal)):
        return principal.identifier
    else:
        assert_never(principal)


def principal_display_name(principal: Principal) -> str:
    if isinstance(principal, UserPrincipal):
        return principal.username
    elif isinstance(principal, (GroupPrincipal, DistributionListPrincipal)):
        return principal.display_name or principal.identifier
    else:
        assert_never(principal)


def make_principal(kind: PrincipalType, identifier: str, display_name: str | None = None) -> Principal:
    """Rebuild a principal from its stored columns."""
    if kind is PrincipalType.USER:
        return UserPrincipal(identifier)
    elif kind is PrincipalType.GROUP:
        return GroupPrincipal(identifier, display_name or identifier)
    elif kind is PrincipalType.DISTRIBUTION_LIST:
        return DistributionListPrincipal(identifier, display_name or identifier)
    else:
        assert_never(kind)


def principals_for(username: str, group_identifiers) -> list[Principal]:
    """
    Every principal a caller acts as: their user principal plus, for each
    current group identifier, both a group and a distribution-list principal
    (the directory does not tell us which of the two an identifier is).
    """
    principals: list[Principal] = [UserPrincipal(username)]
    for identifier in group_identifiers:
        principals.append(GroupPrincipal(identifier))
        principals.append(DistributionListPrincipal(identifier))
    return principals
