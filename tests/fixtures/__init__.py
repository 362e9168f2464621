"""Test fixtures for lakekit."""

from .model_factories import (
    make_database,
    make_location,
    make_permission,
    make_role,
    make_table,
    make_tag,
    make_user,
)

__all__ = [
    "make_user",
    "make_role",
    "make_table",
    "make_database",
    "make_location",
    "make_permission",
    "make_tag",
]
