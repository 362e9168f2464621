"""
Resource models: the protected objects permissions are granted on.

Coverage is the relation by which a broader grant satisfies a check on a
narrower resource. Each resource variant implements ``is_covered_by`` for
itself; this is the single coverage function used by the store, the
engine and the backends.
"""

from __future__ import annotations

import logging
from typing import List, Literal, Optional, Tuple, Union

from pydantic import Field, field_validator
from typing_extensions import Annotated

from .base import FrozenGovernanceModel

logger = logging.getLogger(__name__)


class DatabaseResource(FrozenGovernanceModel):
    """An entire database. Covers every table in it."""
    kind: Literal["DATABASE"] = "DATABASE"
    name: str = Field(..., min_length=1, description="Database name")

    def is_covered_by(self, granted: "Resource") -> bool:
        """A database is covered only by the identical database."""
        return isinstance(granted, DatabaseResource) and granted.name == self.name

    def __str__(self) -> str:
        return f"Database({self.name})"


class TableResource(FrozenGovernanceModel):
    """
    A table, optionally restricted to a subset of its columns.

    The column subset is stored and compared for identity, but coverage
    ignores it: column-level restriction is not enforced.
    """
    kind: Literal["TABLE"] = "TABLE"
    database: str = Field(..., min_length=1, description="Database containing the table")
    name: str = Field(..., min_length=1, description="Table name")
    columns: Optional[Tuple[str, ...]] = Field(None, description="Optional column subset")

    @field_validator("columns", mode="before")
    @classmethod
    def coerce_columns(cls, v):
        """Accept any iterable of column names."""
        if v is None:
            return None
        return tuple(v)

    @property
    def full_name(self) -> str:
        """Two-part name, database.table."""
        return f"{self.database}.{self.name}"

    def is_covered_by(self, granted: "Resource") -> bool:
        """A table is covered by the same table or by its database."""
        if isinstance(granted, TableResource):
            return granted.database == self.database and granted.name == self.name
        if isinstance(granted, DatabaseResource):
            return granted.name == self.database
        return False

    def __str__(self) -> str:
        if self.columns:
            return f"Table({self.full_name}[{', '.join(self.columns)}])"
        return f"Table({self.full_name})"


class DataLocationResource(FrozenGovernanceModel):
    """A storage location, identified by its path (e.g. s3://bucket/prefix)."""
    kind: Literal["DATA_LOCATION"] = "DATA_LOCATION"
    path: str = Field(..., min_length=1, description="Location path")

    def is_covered_by(self, granted: "Resource") -> bool:
        """A location is covered by any location whose path is a prefix of it."""
        return isinstance(granted, DataLocationResource) and self.path.startswith(granted.path)

    def __str__(self) -> str:
        return f"DataLocation({self.path})"


class TaggedResource(FrozenGovernanceModel):
    """
    Resources selected by tag conditions.

    Accepted by the parser and stored, but no coverage relation is defined:
    a tagged resource is never covered and never covers anything.
    """
    kind: Literal["TAGGED"] = "TAGGED"
    tag_conditions: Tuple[Tuple[str, Tuple[str, ...]], ...] = Field(..., min_length=1)

    @field_validator("tag_conditions", mode="before")
    @classmethod
    def coerce_conditions(cls, v):
        """Accept a mapping or a list of (key, values) pairs."""
        items = v.items() if isinstance(v, dict) else v
        return tuple((key, tuple(values)) for key, values in items)

    def is_covered_by(self, granted: "Resource") -> bool:
        return False

    def condition_keys(self) -> List[str]:
        return [key for key, _ in self.tag_conditions]

    def __str__(self) -> str:
        conditions = " AND ".join(f"{key} in {list(values)}" for key, values in self.tag_conditions)
        return f"Tagged({conditions})"


Resource = Annotated[
    Union[DatabaseResource, TableResource, DataLocationResource, TaggedResource],
    Field(discriminator="kind"),
]

RESOURCE_TYPES = (DatabaseResource, TableResource, DataLocationResource, TaggedResource)
