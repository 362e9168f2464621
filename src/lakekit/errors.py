"""
Exception hierarchy for lakekit.

Every error raised by the parser, the store and the backends derives from
LakekitError so callers can catch the whole family with a single clause.
"""

from typing import Optional


class LakekitError(Exception):
    """Base class for all lakekit errors."""


class ParseError(LakekitError):
    """Raised when statement or filter text is malformed."""

    def __init__(self, message: str, rule: Optional[str] = None, position: Optional[int] = None):
        self.message = message
        self.rule = rule
        self.position = position
        location = []
        if rule:
            location.append(f"rule '{rule}'")
        if position is not None:
            location.append(f"position {position}")
        prefix = f"Parse error at {', '.join(location)}: " if location else "Parse error: "
        super().__init__(f"{prefix}{message}")


class StatementParseError(ParseError):
    """Raised when a statement does not match the statement grammar."""


class FilterParseError(ParseError):
    """Raised when a row filter expression cannot be parsed."""


class UnknownActionError(StatementParseError):
    """Raised for an action token that maps to no Action."""

    def __init__(self, token: str, position: Optional[int] = None):
        self.token = token
        super().__init__(f"Unknown action: {token}", rule="action", position=position)


class UnknownPrincipalKindError(StatementParseError):
    """Raised for a principal keyword that names no principal kind."""

    def __init__(self, token: str, position: Optional[int] = None):
        self.token = token
        super().__init__(f"Unknown principal type: {token}", rule="principal", position=position)


class UnknownResourceKindError(StatementParseError):
    """Raised for text that names no resource kind."""

    def __init__(self, token: str, position: Optional[int] = None):
        self.token = token
        super().__init__(f"Unknown resource type: {token}", rule="resource", position=position)


class StatementUsageError(LakekitError):
    """Raised when a statement is used for something its kind does not support."""


class UnsupportedFeatureError(LakekitError):
    """Raised when a tagged principal or resource is used where matching is undefined."""


class RoleNotFoundError(LakekitError):
    """Raised when a mutation references a role that does not exist."""

    def __init__(self, role_name: str):
        self.role_name = role_name
        super().__init__(f"Role '{role_name}' does not exist")


class InvalidNameError(LakekitError):
    """Raised when a name cannot be written as a statement identifier."""

    def __init__(self, kind: str, name: str):
        self.kind = kind
        self.name = name
        super().__init__(f"Invalid {kind} name '{name}': use letters, digits, '_' and '-' only")


class ExportError(LakekitError):
    """Raised when store state cannot be rendered as parseable statements."""


class PrincipalNotFoundError(LakekitError):
    """Raised when a principal does not exist in the remote workspace."""

    def __init__(self, principal_name: str):
        self.principal_name = principal_name
        super().__init__(f"Principal '{principal_name}' does not exist in the workspace")


class SecurableNotFoundError(LakekitError):
    """Raised when a resource cannot be mapped to an existing remote securable."""

    def __init__(self, securable_type: str, securable_name: str):
        self.securable_type = securable_type
        self.securable_name = securable_name
        super().__init__(f"{securable_type} '{securable_name}' does not exist in the workspace")


class EvaluationError(LakekitError):
    """Raised when a row filter cannot be evaluated."""


class MissingSessionContextKeyError(EvaluationError):
    """Raised when a filter reads a session context key that is not set."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Session context key '{key}' not found")


__all__ = [
    "LakekitError",
    "ParseError",
    "StatementParseError",
    "FilterParseError",
    "UnknownActionError",
    "UnknownPrincipalKindError",
    "UnknownResourceKindError",
    "StatementUsageError",
    "UnsupportedFeatureError",
    "RoleNotFoundError",
    "InvalidNameError",
    "ExportError",
    "PrincipalNotFoundError",
    "SecurableNotFoundError",
    "EvaluationError",
    "MissingSessionContextKeyError",
]
