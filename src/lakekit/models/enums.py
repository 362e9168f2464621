"""
Enum definitions for lakekit models.

This module contains all enumeration types used throughout the permission system.
"""

from enum import Enum
from typing import Dict

from lakekit.errors import UnknownActionError


class Action(str, Enum):
    """
    Operation rights that can be granted on a resource.

    IMPORTANT:
    - Values are the exact statement tokens (GRANT CREATE_TABLE ON ...)
    - There is no hierarchy: no action implies another
    """
    # Table-level actions
    SELECT = "SELECT"
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"

    # Database-level actions
    CREATE_TABLE = "CREATE_TABLE"
    DROP_TABLE = "DROP_TABLE"
    ALTER_TABLE = "ALTER_TABLE"
    DESCRIBE = "DESCRIBE"

    # Data location actions
    DATA_LOCATION_ACCESS = "DATA_LOCATION_ACCESS"

    # Administrative actions
    GRANT_WITH_GRANT_OPTION = "GRANT_WITH_GRANT_OPTION"

    @classmethod
    def from_token(cls, token: str) -> "Action":
        """
        Map a statement token to an Action, ignoring case.

        Raises:
            UnknownActionError: If the token names no action
        """
        action = _ACTION_TOKENS.get(token.upper())
        if action is None:
            raise UnknownActionError(token)
        return action


_ACTION_TOKENS: Dict[str, Action] = {action.value: action for action in Action}


class OutcomeKind(str, Enum):
    """Kinds of result returned by a backend operation."""
    SUCCESS = "SUCCESS"
    ERROR = "ERROR"
    PERMISSION_CHECK = "PERMISSION_CHECK"
