"""
Principal models: the identities that can hold permissions.

A principal is one of a closed set of variants, distinguished by their
``kind`` field so that the union round-trips through JSON snapshots.
Principal resolution (which granted principal answers for which requested
principal) lives here and nowhere else.
"""

from __future__ import annotations

import logging
from typing import Collection, Literal, Mapping, Tuple, Union

from pydantic import Field, field_validator
from typing_extensions import Annotated

from .base import FrozenGovernanceModel

logger = logging.getLogger(__name__)


class UserPrincipal(FrozenGovernanceModel):
    """An individual user (e.g. an IAM user ARN or an e-mail address)."""
    kind: Literal["USER"] = "USER"
    identifier: str = Field(..., min_length=1, description="User identifier")

    def __str__(self) -> str:
        return f"User({self.identifier})"


class RolePrincipal(FrozenGovernanceModel):
    """A named role; users reach its permissions through direct membership."""
    kind: Literal["ROLE"] = "ROLE"
    name: str = Field(..., min_length=1, description="Role name")

    def __str__(self) -> str:
        return f"Role({self.name})"


class SamlGroupPrincipal(FrozenGovernanceModel):
    """A group asserted by an external SAML identity provider."""
    kind: Literal["SAML_GROUP"] = "SAML_GROUP"
    name: str = Field(..., min_length=1, description="Group name")

    def __str__(self) -> str:
        return f"SamlGroup({self.name})"


class ExternalAccountPrincipal(FrozenGovernanceModel):
    """A cross-account principal."""
    kind: Literal["EXTERNAL_ACCOUNT"] = "EXTERNAL_ACCOUNT"
    account_id: str = Field(..., min_length=1, description="External account id")

    def __str__(self) -> str:
        return f"ExternalAccount({self.account_id})"


class TaggedPrincipal(FrozenGovernanceModel):
    """
    Principals selected by a tag condition.

    Accepted by the parser and stored, but tag-based matching is not
    implemented: a tagged principal never resolves against anything.
    """
    kind: Literal["TAGGED"] = "TAGGED"
    tag_key: str = Field(..., min_length=1)
    tag_values: Tuple[str, ...] = Field(..., min_length=1)

    @field_validator("tag_values", mode="before")
    @classmethod
    def coerce_values(cls, v):
        """Accept any iterable of strings."""
        if isinstance(v, str):
            return (v,)
        return tuple(v)

    def __str__(self) -> str:
        return f"Tagged({self.tag_key} in {list(self.tag_values)})"


Principal = Annotated[
    Union[UserPrincipal, RolePrincipal, SamlGroupPrincipal, ExternalAccountPrincipal, TaggedPrincipal],
    Field(discriminator="kind"),
]

PRINCIPAL_TYPES = (UserPrincipal, RolePrincipal, SamlGroupPrincipal, ExternalAccountPrincipal, TaggedPrincipal)


def resolve_principal(
    requested: Principal,
    granted: Principal,
    role_members: Mapping[str, Collection[str]],
) -> bool:
    """
    Decide whether a permission held by ``granted`` applies to ``requested``.

    Rules:
    1. Like-kind principals match on value equality
    2. A user matches a role entry when it is a direct member of that role
    3. Tagged principals never match (tag-based matching is unsupported)

    Args:
        requested: The principal asking for access
        granted: The principal named on the stored permission
        role_members: Role name to member identifiers

    Returns:
        True if the granted principal answers for the requested one
    """
    if isinstance(requested, TaggedPrincipal) or isinstance(granted, TaggedPrincipal):
        return False

    if type(requested) is type(granted):
        return requested == granted

    if isinstance(requested, UserPrincipal) and isinstance(granted, RolePrincipal):
        members = role_members.get(granted.name)
        return members is not None and requested.identifier in members

    return False
