"""
Textual export of store state.

``to_ddl`` renders a snapshot as a statement script that recreates it;
``to_summary`` renders a human-readable overview. Both are presentation
only; ``lakekit.storage`` holds the canonical serialization.
"""

import logging
from typing import Iterable, List

from lakekit.errors import ExportError
from lakekit.language.tokens import is_identifier, quote
from lakekit.models import (
    DatabaseResource,
    DataLocationResource,
    ExternalAccountPrincipal,
    Permission,
    Principal,
    Resource,
    RolePrincipal,
    SamlGroupPrincipal,
    TableResource,
    TaggedPrincipal,
    TaggedResource,
    UserPrincipal,
)
from lakekit.store import StoreSnapshot

logger = logging.getLogger(__name__)


def _quote(value: str) -> str:
    try:
        return quote(value)
    except ValueError as e:
        raise ExportError(str(e)) from e


def _quoted_list(values: Iterable[str]) -> str:
    return ", ".join(_quote(value) for value in values)


def _name(kind: str, value: str) -> str:
    """Bare names must tokenize as one identifier."""
    if not is_identifier(value):
        raise ExportError(f"Cannot export {kind} name '{value}': not an identifier")
    return value


def format_principal(principal: Principal) -> str:
    """Render a principal in statement syntax."""
    if isinstance(principal, RolePrincipal):
        return f"ROLE {_name('role', principal.name)}"
    if isinstance(principal, UserPrincipal):
        return f"USER {_quote(principal.identifier)}"
    if isinstance(principal, SamlGroupPrincipal):
        return f"GROUP {_quote(principal.name)}"
    if isinstance(principal, ExternalAccountPrincipal):
        return f"EXTERNAL_ACCOUNT {_quote(principal.account_id)}"
    if isinstance(principal, TaggedPrincipal):
        return f"TAGGED {principal.tag_key} IN ({_quoted_list(principal.tag_values)})"
    raise TypeError(f"Unsupported principal: {principal!r}")


def format_resource(resource: Resource) -> str:
    """Render a resource in statement syntax."""
    if isinstance(resource, DatabaseResource):
        return f"DATABASE {_name('database', resource.name)}"
    if isinstance(resource, TableResource):
        full_name = f"{_name('database', resource.database)}.{_name('table', resource.name)}"
        if resource.columns:
            return f"{full_name}({_quoted_list(resource.columns)})"
        return full_name
    if isinstance(resource, DataLocationResource):
        return _quote(resource.path)
    if isinstance(resource, TaggedResource):
        conditions = " AND ".join(
            f"{key} IN ({_quoted_list(values)})" for key, values in resource.tag_conditions
        )
        return f"RESOURCES TAGGED {conditions}"
    raise TypeError(f"Unsupported resource: {resource!r}")


def format_grant(permission: Permission) -> str:
    """Render a permission as the GRANT statement that creates it."""
    actions = ", ".join(action.value for action in permission.actions)
    statement = (
        f"GRANT {actions} ON {format_resource(permission.resource)} "
        f"TO {format_principal(permission.principal)}"
    )
    if permission.grant_option:
        statement += " WITH GRANT OPTION"
    if permission.row_filter:
        statement += f" WHERE {permission.row_filter.expression}"
    return statement + ";"


def to_ddl(snapshot: StoreSnapshot) -> str:
    """
    Render a snapshot as a script of statements.

    Order: roles, role members, tags, then grants in store order. Parsing
    the result with ``parse_script`` and applying it reproduces the same
    permissions, roles and tags. The session context is not exported.
    """
    lines: List[str] = [
        "-- lakekit state export",
        "-- Statements to recreate this state",
        "",
    ]

    for name in sorted(snapshot.roles):
        lines.append(f"CREATE ROLE {_name('role', name)};")
    for name in sorted(snapshot.roles):
        for member in sorted(snapshot.roles[name]):
            lines.append(f"ALTER ROLE {name} ADD USER {_quote(member)};")
    lines.append("")

    for key in sorted(snapshot.tags):
        tag = snapshot.tags[key]
        lines.append(f"CREATE TAG {tag.key} VALUES ({_quoted_list(tag.values)});")
    lines.append("")

    for permission in snapshot.permissions:
        lines.append(format_grant(permission))

    logger.debug(f"Exported {len(snapshot.permissions)} grants")
    return "\n".join(lines) + "\n"


def to_summary(snapshot: StoreSnapshot) -> str:
    """Human-readable overview of a snapshot."""
    lines = [
        "Lake Permission State Summary",
        "=============================",
        "",
        "📊 Statistics:",
        f"- Permissions: {len(snapshot.permissions)}",
        f"- Roles: {len(snapshot.roles)}",
        f"- Tags: {len(snapshot.tags)}",
        f"- Session Context Keys: {len(snapshot.session_context)}",
        "",
    ]

    if snapshot.roles:
        lines.append("👥 Roles:")
        for name in sorted(snapshot.roles):
            members = sorted(snapshot.roles[name])
            lines.append(f"- {name}: {len(members)} member(s)")
            lines.extend(f"  • {member}" for member in members)
        lines.append("")

    if snapshot.tags:
        lines.append("🏷️ Tags:")
        for key in sorted(snapshot.tags):
            lines.append(f"- {key}: {snapshot.tags[key].values}")
        lines.append("")

    if snapshot.permissions:
        lines.append("🔐 Permissions:")
        for i, permission in enumerate(snapshot.permissions, 1):
            actions = ", ".join(action.value for action in permission.actions)
            line = f"{i}. {permission.principal} → [{actions}] → {permission.resource}"
            if permission.row_filter:
                line += f" WHERE {permission.row_filter.expression}"
            lines.append(line)

    return "\n".join(lines)
