"""
Backend port.

Every backend (the in-memory emulator, the Unity Catalog adapter) exposes
the same operations so callers can switch between them through
configuration alone.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Mapping, Optional, Sequence, Union

from lakekit.models import PRINCIPAL_TYPES, RESOURCE_TYPES, Action, LakeTag, OutcomeKind, Permission, Principal, Resource

logger = logging.getLogger(__name__)


@dataclass
class Outcome:
    """Result of a backend operation."""

    kind: OutcomeKind
    message: str = ""
    allowed: Optional[bool] = None
    reason: Optional[str] = None
    error: Optional[Exception] = None

    @classmethod
    def success(cls, message: str) -> "Outcome":
        return cls(kind=OutcomeKind.SUCCESS, message=message)

    @classmethod
    def failure(cls, message: str, error: Optional[Exception] = None) -> "Outcome":
        return cls(kind=OutcomeKind.ERROR, message=message, error=error)

    @classmethod
    def permission_check(cls, allowed: bool, reason: Optional[str] = None) -> "Outcome":
        return cls(
            kind=OutcomeKind.PERMISSION_CHECK,
            message="Allowed" if allowed else "Denied",
            allowed=allowed,
            reason=reason,
        )

    @property
    def ok(self) -> bool:
        return self.kind != OutcomeKind.ERROR

    def __str__(self) -> str:
        """String representation of the outcome."""
        status = "✅" if self.ok else "❌"
        return f"{status} {self.kind.value}: {self.message}"


class AuthorizationBackend(ABC):
    """
    Port implemented by every permission backend.

    Parse errors and mutation errors propagate to the caller unchanged;
    ``check_permission`` never raises for evaluation problems.
    """

    @abstractmethod
    def execute_statement(self, text: str) -> Outcome:
        """
        Parse and apply one statement.

        Args:
            text: Statement text

        Returns:
            Outcome of applying the statement
        """
        pass

    @abstractmethod
    def grant(self, permission: Permission) -> Outcome:
        """Store a permission, replacing any entry with the same principal and resource."""
        pass

    @abstractmethod
    def revoke(self, principal: Principal, resource: Resource, actions: Sequence[Action]) -> Outcome:
        """Remove the entries for this principal and resource that carry any of ``actions``."""
        pass

    @abstractmethod
    def check_permission(self, principal: Principal, resource: Resource, action: Action) -> bool:
        """Decide a request. Never raises for evaluation problems."""
        pass

    @abstractmethod
    def create_tag(self, tag: LakeTag) -> Outcome:
        pass

    @abstractmethod
    def delete_tag(self, key: str) -> Outcome:
        pass

    @abstractmethod
    def list_permissions_for_principal(self, principal: Principal) -> List[Permission]:
        pass

    @abstractmethod
    def list_permissions_for_resource(self, resource: Resource) -> List[Permission]:
        pass

    @abstractmethod
    def set_session_context(self, context: Mapping[str, str]) -> None:
        pass

    def list_permissions_for(self, target: Union[Principal, Resource]) -> List[Permission]:
        """
        List permissions for a principal or a resource.

        Raises:
            TypeError: If ``target`` is neither a principal nor a resource
        """
        if isinstance(target, PRINCIPAL_TYPES):
            return self.list_permissions_for_principal(target)
        if isinstance(target, RESOURCE_TYPES):
            return self.list_permissions_for_resource(target)
        raise TypeError(f"Expected a principal or a resource, got {type(target).__name__}")
