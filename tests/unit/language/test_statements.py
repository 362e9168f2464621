"""
Unit tests for the statement grammar.

Tests every statement form, resource and principal syntax, and the
error reporting of the parser.
"""

import pytest

from lakekit.errors import (
    StatementParseError,
    StatementUsageError,
    UnknownActionError,
    UnknownPrincipalKindError,
    UnknownResourceKindError,
)
from lakekit.language import statements
from lakekit.language.statements import (
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
    parse_script,
    parse_statement,
)
from lakekit.language.tokens import EOF, IDENT, STRING, is_identifier, quote, split_outside_quotes, tokenize
from lakekit.models import (
    Action,
    DatabaseResource,
    DataLocationResource,
    ExternalAccountPrincipal,
    RolePrincipal,
    SamlGroupPrincipal,
    TableResource,
    TaggedPrincipal,
    TaggedResource,
    UserPrincipal,
)


class TestTokenize:
    """Tests for the tokenizer."""

    def test_basic_tokens(self) -> None:
        """Identifiers, strings and EOF are produced."""
        tokens = tokenize("USER 'alice'")
        assert [(t.type, t.value) for t in tokens] == [(IDENT, "USER"), (STRING, "alice"), (EOF, "")]

    def test_where_is_an_identifier(self) -> None:
        """The tokenizer treats WHERE like any other word."""
        tokens = tokenize("CREATE ROLE where")
        assert [(t.type, t.value) for t in tokens] == [
            (IDENT, "CREATE"), (IDENT, "ROLE"), (IDENT, "where"), (EOF, "")
        ]

    def test_double_quoted_string_keeps_apostrophe(self) -> None:
        """A double-quoted string ends only at the next double quote."""
        tokens = tokenize("USER \"o'brien\"")
        assert tokens[1].type == STRING
        assert tokens[1].value == "o'brien"

    def test_quote_round_trips(self) -> None:
        """quote() picks the quote character the value does not contain."""
        assert quote("alice") == "'alice'"
        assert quote("o'brien") == "\"o'brien\""
        for value in ("alice", "o'brien", 'say "hi"'):
            assert tokenize(quote(value))[0].value == value
        with pytest.raises(ValueError):
            quote("a'b\"c")

    def test_is_identifier(self) -> None:
        """Identifiers are non-empty runs of letters, digits, '_' and '-'."""
        assert is_identifier("data-team_2")
        assert not is_identifier("my role")
        assert not is_identifier("a.b")
        assert not is_identifier("")

    def test_unterminated_string(self) -> None:
        """Unterminated strings report their start position."""
        with pytest.raises(StatementParseError) as exc_info:
            tokenize("USER 'alice")
        assert exc_info.value.position == 5

    def test_split_outside_quotes(self) -> None:
        """Separators inside quotes are kept."""
        assert split_outside_quotes("a;'b;c';d", ";") == ["a", "'b;c'", "d"]


class TestGrant:
    """Tests for GRANT statements."""

    def test_simple_grant(self) -> None:
        """GRANT SELECT ON db.table TO ROLE name."""
        statement = parse_statement("GRANT SELECT ON sales.orders TO ROLE analyst")
        assert isinstance(statement, GrantStatement)
        assert statement.actions == [Action.SELECT]
        assert statement.resource == TableResource(database="sales", name="orders")
        assert statement.principal == RolePrincipal(name="analyst")
        assert statement.grant_option is False
        assert statement.row_filter is None

    def test_keywords_case_insensitive(self) -> None:
        """Keywords and actions may be lower case."""
        statement = parse_statement("grant select, insert on database sales to role analyst;")
        assert statement.actions == [Action.SELECT, Action.INSERT]
        assert statement.resource == DatabaseResource(name="sales")

    def test_grant_option(self) -> None:
        """WITH GRANT OPTION sets grant_option."""
        statement = parse_statement("GRANT SELECT ON sales.orders TO USER 'alice' WITH GRANT OPTION")
        assert statement.grant_option is True
        assert statement.principal == UserPrincipal(identifier="alice")

    def test_row_filter(self) -> None:
        """The WHERE remainder becomes the filter expression."""
        statement = parse_statement(
            "GRANT SELECT ON sales.orders TO ROLE analyst WHERE region = SESSION_CONTEXT('user_region');"
        )
        assert statement.row_filter is not None
        assert statement.row_filter.expression == "region = SESSION_CONTEXT('user_region')"

    def test_where_as_a_name(self) -> None:
        """WHERE starts a row filter only after the principal; elsewhere it is a name."""
        statement = parse_statement("GRANT SELECT ON where.orders TO ROLE where WHERE region = 'west'")
        assert statement.resource == TableResource(database="where", name="orders")
        assert statement.principal == RolePrincipal(name="where")
        assert statement.row_filter.expression == "region = 'west'"
        statement = parse_statement("GRANT DESCRIBE ON DATABASE where TO ROLE analyst")
        assert statement.resource == DatabaseResource(name="where")
        assert parse_statement("CREATE ROLE where") == CreateRoleStatement(name="where")

    def test_row_filter_with_grant_option(self) -> None:
        """The filter follows WITH GRANT OPTION and keeps quoted text verbatim."""
        statement = parse_statement(
            "GRANT SELECT ON sales.orders TO USER \"o'neil\" WITH GRANT OPTION WHERE note != \"it's\";"
        )
        assert statement.grant_option is True
        assert statement.principal == UserPrincipal(identifier="o'neil")
        assert statement.row_filter.expression == "note != \"it's\""

    def test_invalid_row_filter(self) -> None:
        """A malformed filter fails the statement."""
        with pytest.raises(StatementParseError) as exc_info:
            parse_statement("GRANT SELECT ON sales.orders TO ROLE analyst WHERE region")
        assert exc_info.value.rule == "row_filter"

    def test_column_list(self) -> None:
        """Tables may carry a quoted column list."""
        statement = parse_statement("GRANT SELECT ON sales.orders('id', 'amount') TO ROLE analyst")
        assert statement.resource == TableResource(database="sales", name="orders", columns=("id", "amount"))

    def test_data_location(self) -> None:
        """A quoted string is a data location."""
        statement = parse_statement("GRANT DATA_LOCATION_ACCESS ON 's3://lake/raw/' TO EXTERNAL_ACCOUNT '123456789012'")
        assert statement.resource == DataLocationResource(path="s3://lake/raw/")
        assert statement.principal == ExternalAccountPrincipal(account_id="123456789012")

    def test_group_principal(self) -> None:
        """GROUP names a SAML group."""
        statement = parse_statement("GRANT DESCRIBE ON DATABASE hr TO GROUP 'HR Admins'")
        assert statement.principal == SamlGroupPrincipal(name="HR Admins")

    def test_tagged_principal_and_resource(self) -> None:
        """Tag-based principals and resources are accepted."""
        statement = parse_statement(
            "GRANT SELECT ON RESOURCES TAGGED department IN ('sales') AND tier IN ('gold', 'silver') "
            "TO TAGGED team IN ('data', 'bi')"
        )
        assert statement.resource == TaggedResource(
            tag_conditions=[("department", ("sales",)), ("tier", ("gold", "silver"))]
        )
        assert statement.principal == TaggedPrincipal(tag_key="team", tag_values=("data", "bi"))

    def test_to_permission(self) -> None:
        """GRANT statements convert to the permission they create."""
        permission = parse_statement("GRANT SELECT, SELECT ON sales.orders TO ROLE analyst").to_permission()
        assert permission.actions == [Action.SELECT]
        assert permission.principal == RolePrincipal(name="analyst")


class TestOtherStatements:
    """Tests for the remaining statement forms."""

    def test_revoke(self) -> None:
        """REVOKE uses FROM."""
        statement = parse_statement("REVOKE INSERT ON sales.orders FROM ROLE analyst")
        assert isinstance(statement, RevokeStatement)
        assert statement.actions == [Action.INSERT]

    def test_create_role(self) -> None:
        """CREATE ROLE name."""
        assert parse_statement("CREATE ROLE analyst") == CreateRoleStatement(name="analyst")

    def test_create_tag(self) -> None:
        """CREATE TAG name VALUES (...)."""
        statement = parse_statement("CREATE TAG department VALUES ('sales', 'finance')")
        assert statement == CreateTagStatement(name="department", values=["sales", "finance"])
        assert statement.to_tag().values == ["sales", "finance"]

    def test_drop_role_and_tag(self) -> None:
        """DROP ROLE / DROP TAG."""
        assert parse_statement("DROP ROLE analyst") == DropRoleStatement(name="analyst")
        assert parse_statement("DROP TAG department") == DropTagStatement(name="department")

    def test_show(self) -> None:
        """SHOW PERMISSIONS [FOR p], SHOW ROLES, SHOW TAGS."""
        assert parse_statement("SHOW PERMISSIONS") == ShowPermissionsStatement()
        statement = parse_statement("SHOW PERMISSIONS FOR USER 'alice'")
        assert statement.principal == UserPrincipal(identifier="alice")
        assert isinstance(parse_statement("SHOW ROLES"), ShowRolesStatement)
        assert isinstance(parse_statement("show tags"), ShowTagsStatement)

    def test_alter_role(self) -> None:
        """ALTER ROLE name ADD|REMOVE USER 'id'."""
        statement = parse_statement("ALTER ROLE analyst ADD USER 'alice'")
        assert statement == AlterRoleStatement(name="analyst", operation="ADD", user="alice")
        assert parse_statement("alter role analyst remove user 'alice'").operation == "REMOVE"

    def test_to_permission_rejected_for_non_grant(self) -> None:
        """Only GRANT converts to a permission."""
        with pytest.raises(StatementUsageError):
            parse_statement("CREATE ROLE analyst").to_permission()


class TestParseErrors:
    """Tests for error reporting."""

    def test_unknown_action(self) -> None:
        """Unknown actions carry their position."""
        with pytest.raises(UnknownActionError) as exc_info:
            parse_statement("GRANT TRUNCATE ON sales.orders TO ROLE analyst")
        assert exc_info.value.position == 6

    def test_unknown_principal_kind(self) -> None:
        """Unknown principal keywords are reported as such."""
        with pytest.raises(UnknownPrincipalKindError):
            parse_statement("GRANT SELECT ON sales.orders TO ROBOT 'r2d2'")

    def test_unknown_resource_kind(self) -> None:
        """A bare word that is not DATABASE or db.table is an unknown resource."""
        with pytest.raises(UnknownResourceKindError):
            parse_statement("GRANT SELECT ON CATALOG main TO ROLE analyst")

    def test_missing_keyword(self) -> None:
        """Structural errors report the rule and position."""
        with pytest.raises(StatementParseError) as exc_info:
            parse_statement("GRANT SELECT sales.orders TO ROLE analyst")
        assert exc_info.value.rule == "grant"
        assert exc_info.value.position == 13
        assert "Expected ON" in str(exc_info.value)

    def test_unknown_statement(self) -> None:
        """Unknown leading keywords are rejected."""
        with pytest.raises(StatementParseError):
            parse_statement("DELETE FROM sales.orders")

    def test_trailing_tokens(self) -> None:
        """Extra tokens after a complete statement are rejected."""
        with pytest.raises(StatementParseError):
            parse_statement("SHOW ROLES please")

    def test_invalid_tag_name(self) -> None:
        """Tag names follow the tag key pattern."""
        with pytest.raises(StatementParseError) as exc_info:
            parse_statement("CREATE TAG 9lives VALUES ('a')")
        assert exc_info.value.rule == "tag_name"

    @pytest.mark.parametrize(
        "text, rule, position",
        [
            ("GRANT SELECT ON sales.orders TO USER ''", "principal", 37),
            ("GRANT SELECT ON sales.orders TO GROUP ''", "principal", 38),
            ("GRANT SELECT ON sales.orders TO EXTERNAL_ACCOUNT ''", "principal", 49),
            ("GRANT SELECT ON '' TO ROLE analyst", "resource", 16),
            ("ALTER ROLE analyst ADD USER ''", "alter_role", 28),
            ("ALTER ROLE analyst ADD USER '   '", "alter_role", 28),
        ],
    )
    def test_empty_quoted_string(self, text: str, rule: str, position: int) -> None:
        """Empty quoted values are parse errors at the string's position."""
        with pytest.raises(StatementParseError) as exc_info:
            parse_statement(text)
        assert exc_info.value.rule == rule
        assert exc_info.value.position == position
        assert "non-empty" in exc_info.value.message

    def test_model_rejection_is_a_parse_error(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Values the statement models reject surface as StatementParseError, not a pydantic error."""
        def build_invalid_user(self) -> UserPrincipal:
            return UserPrincipal(identifier="")

        monkeypatch.setattr(statements._Parser, "parse", build_invalid_user)
        with pytest.raises(StatementParseError) as exc_info:
            parse_statement("SHOW ROLES")
        assert exc_info.value.rule == "statement"
        assert "identifier" in exc_info.value.message

    def test_where_outside_grant_is_rejected(self) -> None:
        """A WHERE clause is only part of GRANT."""
        with pytest.raises(StatementParseError) as exc_info:
            parse_statement("REVOKE SELECT ON sales.orders FROM ROLE analyst WHERE region = 'west'")
        assert exc_info.value.rule == "statement"
        assert "'WHERE' (IDENT)" in exc_info.value.message

    def test_user_requires_quotes(self) -> None:
        """USER takes a quoted identifier."""
        with pytest.raises(StatementParseError):
            parse_statement("GRANT SELECT ON sales.orders TO USER alice")


class TestParseScript:
    """Tests for multi-statement scripts."""

    def test_script_with_comments(self) -> None:
        """Statements split on ';' with comments and blank lines skipped."""
        statements = parse_script(
            """
            -- setup
            CREATE ROLE analyst;
            GRANT SELECT ON sales.orders TO ROLE analyst WHERE note = 'a;b'; -- trailing

            SHOW ROLES
            """
        )
        assert [s.kind for s in statements] == ["CREATE_ROLE", "GRANT", "SHOW_ROLES"]
        assert statements[1].row_filter.expression == "note = 'a;b'"

    def test_empty_script(self) -> None:
        """A script of only comments has no statements."""
        assert parse_script("-- nothing here\n\n") == []
