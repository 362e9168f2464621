"""
Unit tests for resource models and coverage.
"""

import pytest
from pydantic import ValidationError

from lakekit.models import DataLocationResource, TableResource, TaggedResource
from tests.fixtures import make_database, make_location, make_table


class TestTableCoverage:
    """Tests for table coverage."""

    def test_covered_by_same_table(self) -> None:
        """A table is covered by an identical table grant."""
        assert make_table().is_covered_by(make_table())

    def test_covered_by_own_database(self) -> None:
        """A table is covered by a grant on its database."""
        assert make_table("sales", "orders").is_covered_by(make_database("sales"))

    def test_not_covered_by_other_database(self) -> None:
        """A grant on another database does not leak."""
        assert not make_table("hr", "employees").is_covered_by(make_database("sales"))

    def test_not_covered_by_other_table(self) -> None:
        """Tables in the same database do not cover each other."""
        assert not make_table("sales", "orders").is_covered_by(make_table("sales", "customers"))

    def test_columns_ignored_for_coverage(self) -> None:
        """Column subsets on either side do not affect coverage."""
        narrow = make_table(columns=["amount"])
        assert narrow.is_covered_by(make_table())
        assert make_table().is_covered_by(narrow)

    def test_columns_part_of_identity(self) -> None:
        """Tables with different column subsets are different resources."""
        assert make_table(columns=["amount"]) != make_table()

    def test_full_name(self) -> None:
        """full_name joins database and table."""
        assert make_table("sales", "orders").full_name == "sales.orders"


class TestDatabaseCoverage:
    """Tests for database coverage."""

    def test_covered_by_same_database(self) -> None:
        """A database is covered by itself."""
        assert make_database("sales").is_covered_by(make_database("sales"))

    def test_not_covered_by_table(self) -> None:
        """A table grant never covers its database."""
        assert not make_database("sales").is_covered_by(make_table("sales", "orders"))


class TestDataLocationCoverage:
    """Tests for location prefix coverage."""

    def test_prefix_covers(self) -> None:
        """A location is covered by a location whose path prefixes it."""
        assert make_location("s3://lake/raw/2024/").is_covered_by(make_location("s3://lake/raw/"))

    def test_longer_path_does_not_cover(self) -> None:
        """A narrower location does not cover a broader one."""
        assert not make_location("s3://lake/raw/").is_covered_by(make_location("s3://lake/raw/2024/"))

    def test_sibling_does_not_cover(self) -> None:
        """Sibling prefixes do not cover each other."""
        assert not DataLocationResource(path="s3://lake/curated").is_covered_by(make_location("s3://lake/raw"))


class TestTaggedResource:
    """Tests for tag-selected resources."""

    def test_accepts_mapping(self) -> None:
        """Conditions may be given as a mapping."""
        tagged = TaggedResource(tag_conditions={"department": ["sales"], "tier": ["gold", "silver"]})
        assert tagged.condition_keys() == ["department", "tier"]

    def test_never_covered(self) -> None:
        """Tagged resources have no coverage relation."""
        tagged = TaggedResource(tag_conditions=[("department", ["sales"])])
        assert not tagged.is_covered_by(tagged)
        assert not make_table().is_covered_by(tagged)

    def test_requires_a_condition(self) -> None:
        """At least one tag condition is required."""
        with pytest.raises(ValidationError):
            TaggedResource(tag_conditions=[])


class TestResourceValidation:
    """Tests for field validation."""

    def test_table_requires_database(self) -> None:
        """Tables need a database name."""
        with pytest.raises(ValidationError):
            TableResource(database="", name="orders")
