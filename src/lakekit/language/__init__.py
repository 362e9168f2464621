"""
Textual languages: permission statements and row-filter expressions.
"""

from .filters import FilterEvaluator, evaluate_filter, parse_filter
from .statements import (
    AlterRoleStatement,
    CreateRoleStatement,
    CreateTagStatement,
    DropRoleStatement,
    DropTagStatement,
    GrantStatement,
    RevokeStatement,
    ShowPermissionsStatement,
    ShowRolesStatement,
    ShowTagsStatement,
    Statement,
    parse_script,
    parse_statement,
)

__all__ = [
    # Filters
    "parse_filter",
    "evaluate_filter",
    "FilterEvaluator",
    # Statements
    "Statement",
    "GrantStatement",
    "RevokeStatement",
    "CreateRoleStatement",
    "CreateTagStatement",
    "DropRoleStatement",
    "DropTagStatement",
    "ShowPermissionsStatement",
    "ShowRolesStatement",
    "ShowTagsStatement",
    "AlterRoleStatement",
    "parse_statement",
    "parse_script",
]
