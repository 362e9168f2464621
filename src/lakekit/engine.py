"""
Authorization engine.

Answers "may principal P perform action A on resource R?" against a store
snapshot. Evaluation is pure: it never mutates the snapshot and never
raises for evaluation problems. A row filter that cannot be parsed or
evaluated makes its entry not match (fail closed).

Decision procedure, for each permission in insertion order:
1. Principal resolves (like-kind equality, or user in granted role)
2. Action is granted (exact membership)
3. Resource is covered by the granted resource
4. Row filter, if any, evaluates to true

The first entry satisfying all four allows the request.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

from lakekit.errors import LakekitError
from lakekit.language.filters import evaluate_filter
from lakekit.models import (
    Action,
    DatabaseResource,
    Permission,
    Principal,
    Resource,
    TableResource,
    resolve_principal,
)
from lakekit.store import StoreSnapshot

logger = logging.getLogger(__name__)


# Representative rows used when a check does not supply row data
_TABLE_ROWS: Dict[str, Dict[str, str]] = {
    "sales.orders": {
        "region": "west",
        "department": "sales",
        "customer_id": "12345",
        "amount": "1000.00",
        "status": "active",
    },
    "hr.employees": {
        "department": "engineering",
        "manager": "john_doe",
        "level": "senior",
        "region": "west",
    },
    "finance.transactions": {
        "classification": "confidential",
        "department": "finance",
        "region": "east",
    },
}
_DEFAULT_TABLE_ROW = {"region": "west", "department": "general"}


def representative_row(resource: Resource) -> Dict[str, str]:
    """
    Row data a filter is evaluated against when the caller supplies none.

    Known tables have fixed sample rows; other tables, databases and
    remaining resource kinds get generic defaults.
    """
    if isinstance(resource, TableResource):
        return dict(_TABLE_ROWS.get(resource.full_name, _DEFAULT_TABLE_ROW))
    if isinstance(resource, DatabaseResource):
        row = {"database_owner": "admin", "classification": "internal"}
        if "finance" in resource.name:
            row["department"] = "finance"
        return row
    return {"access_level": "public"}


@dataclass
class EntryTrace:
    """How one stored permission fared against a request."""
    index: int
    permission: Permission
    principal_match: bool
    action_match: bool
    resource_match: bool
    filter_match: bool
    filter_error: Optional[str] = None

    @property
    def matched(self) -> bool:
        return self.principal_match and self.action_match and self.resource_match and self.filter_match

    def __str__(self) -> str:
        line = (
            f"Permission {self.index}: principal={str(self.principal_match).lower()} "
            f"action={str(self.action_match).lower()} resource={str(self.resource_match).lower()} "
            f"row_filter={str(self.filter_match).lower()} => {str(self.matched).lower()}"
        )
        if self.filter_error:
            line += f" ({self.filter_error})"
        return line


@dataclass
class CheckTrace:
    """Decision plus the per-entry reasoning that produced it."""
    principal: Principal
    resource: Resource
    action: Action
    allowed: bool
    entries: List[EntryTrace] = field(default_factory=list)

    def __str__(self) -> str:
        body = "\n".join(str(entry) for entry in self.entries)
        if self.allowed:
            return body
        return f"DENIED:\n{body}"


def _filter_passes(
    permission: Permission,
    resource: Resource,
    row: Optional[Mapping[str, str]],
    session_context: Mapping[str, str],
) -> EntryTrace:
    # Only the filter outcome is filled in here; caller supplies the rest
    trace = EntryTrace(0, permission, False, False, False, True)
    if permission.row_filter is None:
        return trace
    data = row if row is not None else representative_row(resource)
    try:
        trace.filter_match = evaluate_filter(permission.row_filter, data, session_context)
    except LakekitError as e:
        logger.debug(f"Row filter '{permission.row_filter.expression}' failed, entry does not match: {e}")
        trace.filter_match = False
        trace.filter_error = str(e)
    return trace


def _evaluate_entry(
    index: int,
    permission: Permission,
    snapshot: StoreSnapshot,
    principal: Principal,
    resource: Resource,
    action: Action,
    row: Optional[Mapping[str, str]],
) -> EntryTrace:
    principal_match = resolve_principal(principal, permission.principal, snapshot.roles)
    action_match = permission.has_action(action)
    resource_match = resource.is_covered_by(permission.resource)

    # Filters are reported even for entries that already fail
    trace = _filter_passes(permission, resource, row, snapshot.session_context)
    trace.index = index
    trace.principal_match = principal_match
    trace.action_match = action_match
    trace.resource_match = resource_match
    return trace


def explain_permission(
    snapshot: StoreSnapshot,
    principal: Principal,
    resource: Resource,
    action: Action,
    row: Optional[Mapping[str, str]] = None,
) -> CheckTrace:
    """
    Decide a request and record why.

    Entries are evaluated in order until the first full match; the trace
    holds every entry evaluated up to and including that match.
    """
    trace = CheckTrace(principal=principal, resource=resource, action=action, allowed=False)
    for index, permission in enumerate(snapshot.permissions):
        entry = _evaluate_entry(index, permission, snapshot, principal, resource, action, row)
        trace.entries.append(entry)
        if entry.matched:
            trace.allowed = True
            break
    return trace


def check_permission(
    snapshot: StoreSnapshot,
    principal: Principal,
    resource: Resource,
    action: Action,
    row: Optional[Mapping[str, str]] = None,
) -> bool:
    """
    Decide whether ``principal`` may perform ``action`` on ``resource``.

    Args:
        snapshot: Store state to decide against
        principal: Requesting principal
        resource: Target resource
        action: Requested action
        row: Row data for row filters; defaults to the resource's representative row

    Returns:
        True if some permission allows the request; False otherwise,
        including for an empty store
    """
    for permission in snapshot.permissions:
        if not resolve_principal(principal, permission.principal, snapshot.roles):
            continue
        if not permission.has_action(action):
            continue
        if not resource.is_covered_by(permission.resource):
            continue
        if _filter_passes(permission, resource, row, snapshot.session_context).filter_match:
            logger.debug(f"Allowed {action.value} on {resource} for {principal}")
            return True

    logger.debug(f"Denied {action.value} on {resource} for {principal}")
    return False
