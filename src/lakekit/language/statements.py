"""
Statement grammar.

Parses permission statements into structured statement models::

    GRANT <actions> ON <resource> TO <principal> [WITH GRANT OPTION] [WHERE <filter>]
    REVOKE <actions> ON <resource> FROM <principal>
    CREATE ROLE <name>
    CREATE TAG <name> VALUES ('a', 'b')
    DROP ROLE <name>
    DROP TAG <name>
    SHOW PERMISSIONS [FOR <principal>]
    SHOW ROLES
    SHOW TAGS
    ALTER ROLE <name> ADD USER '<id>'
    ALTER ROLE <name> REMOVE USER '<id>'

Resources:
    DATABASE <name>
    <database>.<table>[('col1', 'col2')]
    '<path>'                                      (data location)
    RESOURCES TAGGED <key> IN ('v1') [AND <key> IN ('v2')]

Principals:
    ROLE <name> | USER '<id>' | GROUP '<name>' | EXTERNAL_ACCOUNT '<id>'
    TAGGED <key> IN ('v1', 'v2')

Keywords are case-insensitive. WHERE is a keyword only after the principal
of a GRANT; the rest of the text is then taken verbatim as the row filter.
The first structural error raises a StatementParseError carrying the
grammar rule and character position; there is no error recovery.
"""

from __future__ import annotations

import logging
from typing import List, Literal, Optional, Tuple, Union

from pydantic import Field, ValidationError
from typing_extensions import Annotated

from lakekit.errors import (
    FilterParseError,
    StatementParseError,
    StatementUsageError,
    UnknownActionError,
    UnknownPrincipalKindError,
    UnknownResourceKindError,
)
from lakekit.models import (
    Action,
    BaseGovernanceModel,
    DatabaseResource,
    DataLocationResource,
    ExternalAccountPrincipal,
    LakeTag,
    Permission,
    Principal,
    Resource,
    RolePrincipal,
    RowFilter,
    SamlGroupPrincipal,
    TableResource,
    TaggedPrincipal,
    TaggedResource,
    UserPrincipal,
)
from lakekit.models.grants import TAG_KEY_PATTERN

from .filters import parse_filter
from .tokens import (
    COMMA,
    DOT,
    EOF,
    IDENT,
    LPAREN,
    RPAREN,
    SEMI,
    STRING,
    Token,
    find_outside_quotes,
    iter_tokens,
    split_outside_quotes,
)

logger = logging.getLogger(__name__)


# =============================================================================
# STATEMENT MODELS
# =============================================================================

class StatementBase(BaseGovernanceModel):
    """Common behaviour of parsed statements."""

    def to_permission(self) -> Permission:
        """
        Convert a GRANT statement to the Permission it creates.

        Raises:
            StatementUsageError: For every statement kind other than GRANT
        """
        raise StatementUsageError(
            f"Only GRANT statements can be converted to a permission, got {self.kind}"  # type: ignore[attr-defined]
        )


class GrantStatement(StatementBase):
    kind: Literal["GRANT"] = "GRANT"
    actions: List[Action] = Field(..., min_length=1)
    resource: Resource
    principal: Principal
    grant_option: bool = False
    row_filter: Optional[RowFilter] = None

    def to_permission(self) -> Permission:
        return Permission(
            principal=self.principal,
            resource=self.resource,
            actions=self.actions,
            grant_option=self.grant_option,
            row_filter=self.row_filter,
        )


class RevokeStatement(StatementBase):
    kind: Literal["REVOKE"] = "REVOKE"
    actions: List[Action] = Field(..., min_length=1)
    resource: Resource
    principal: Principal


class CreateRoleStatement(StatementBase):
    kind: Literal["CREATE_ROLE"] = "CREATE_ROLE"
    name: str


class CreateTagStatement(StatementBase):
    kind: Literal["CREATE_TAG"] = "CREATE_TAG"
    name: str
    values: List[str] = Field(default_factory=list)

    def to_tag(self) -> LakeTag:
        return LakeTag(key=self.name, values=self.values)


class DropRoleStatement(StatementBase):
    kind: Literal["DROP_ROLE"] = "DROP_ROLE"
    name: str


class DropTagStatement(StatementBase):
    kind: Literal["DROP_TAG"] = "DROP_TAG"
    name: str


class ShowPermissionsStatement(StatementBase):
    """SHOW PERMISSIONS, optionally restricted to one principal."""
    kind: Literal["SHOW_PERMISSIONS"] = "SHOW_PERMISSIONS"
    principal: Optional[Principal] = None


class ShowRolesStatement(StatementBase):
    kind: Literal["SHOW_ROLES"] = "SHOW_ROLES"


class ShowTagsStatement(StatementBase):
    kind: Literal["SHOW_TAGS"] = "SHOW_TAGS"


class AlterRoleStatement(StatementBase):
    """ALTER ROLE <name> ADD|REMOVE USER '<id>'."""
    kind: Literal["ALTER_ROLE"] = "ALTER_ROLE"
    name: str
    operation: Literal["ADD", "REMOVE"]
    user: str = Field(..., min_length=1)


Statement = Annotated[
    Union[
        GrantStatement,
        RevokeStatement,
        CreateRoleStatement,
        CreateTagStatement,
        DropRoleStatement,
        DropTagStatement,
        ShowPermissionsStatement,
        ShowRolesStatement,
        ShowTagsStatement,
        AlterRoleStatement,
    ],
    Field(discriminator="kind"),
]


# =============================================================================
# PARSER
# =============================================================================

class _Parser:
    """Recursive-descent parser over the lazily tokenized text of one statement."""

    def __init__(self, source: str):
        self.source = source
        self.tokens: List[Token] = []
        self.pos = 0
        self._stream = iter_tokens(source)

    # -- token helpers -------------------------------------------------------

    def _fill(self, index: int) -> None:
        while len(self.tokens) <= index and not (self.tokens and self.tokens[-1].type == EOF):
            self.tokens.append(next(self._stream))

    def _current(self) -> Token:
        self._fill(self.pos)
        return self.tokens[self.pos]

    def _peek(self, offset: int = 1) -> Token:
        self._fill(self.pos + offset)
        index = min(self.pos + offset, len(self.tokens) - 1)
        return self.tokens[index]

    def _advance(self) -> Token:
        token = self._current()
        if token.type != EOF:
            self.pos += 1
        return token

    def _rest(self, token: Token) -> str:
        """Consume everything after ``token`` as raw text."""
        self.tokens = self.tokens[:self.pos] + [Token(EOF, "", len(self.source))]
        self._stream = iter(())
        return self.source[token.position + len(token.value):].strip()

    def _check(self, token_type: str) -> bool:
        return self._current().type == token_type

    def _check_keyword(self, *words: str) -> bool:
        token = self._current()
        return token.type == IDENT and token.upper in words

    def _match_keyword(self, *words: str) -> bool:
        if self._check_keyword(*words):
            self._advance()
            return True
        return False

    def _fail(self, expected: str, rule: str) -> StatementParseError:
        got = self._current()
        return StatementParseError(f"Expected {expected}, but got {got.describe()}", rule=rule, position=got.position)

    def _expect(self, token_type: str, rule: str, expected: Optional[str] = None) -> Token:
        if not self._check(token_type):
            raise self._fail(expected or token_type.lower(), rule)
        return self._advance()

    def _expect_string(self, rule: str, expected: str) -> str:
        token = self._expect(STRING, rule, expected)
        if not token.value.strip():
            raise StatementParseError(f"Expected non-empty {expected}", rule=rule, position=token.position)
        return token.value

    def _expect_keyword(self, word: str, rule: str) -> Token:
        if not self._check_keyword(word):
            raise self._fail(word, rule)
        return self._advance()

    def _value_list(self, rule: str, allow_identifiers: bool = False, allow_empty: bool = False) -> List[str]:
        """Parse ``( 'a', 'b', ... )``."""
        self._expect(LPAREN, rule, "'('")
        values: List[str] = []
        if self._check(RPAREN) and allow_empty:
            self._advance()
            return values
        while True:
            token = self._current()
            if token.type == STRING or (allow_identifiers and token.type == IDENT):
                values.append(self._advance().value)
            else:
                raise self._fail("quoted string", rule)
            if self._check(COMMA):
                self._advance()
                continue
            self._expect(RPAREN, rule, "')'")
            return values

    # -- entry point ---------------------------------------------------------

    def parse(self) -> Statement:
        token = self._current()
        if token.type != IDENT:
            raise self._fail("statement keyword", "statement")

        keyword = token.upper
        if keyword == "GRANT":
            statement = self._grant()
        elif keyword == "REVOKE":
            statement = self._revoke()
        elif keyword == "CREATE":
            statement = self._create()
        elif keyword == "DROP":
            statement = self._drop()
        elif keyword == "SHOW":
            statement = self._show()
        elif keyword == "ALTER":
            statement = self._alter()
        else:
            raise StatementParseError(f"Unknown statement: {token.value}", rule="statement", position=token.position)

        if self._check(SEMI):
            self._advance()
        self._expect(EOF, "statement", "end of statement")
        return statement

    # -- statements ----------------------------------------------------------

    def _grant(self) -> GrantStatement:
        self._expect_keyword("GRANT", "grant")
        actions = self._actions()
        self._expect_keyword("ON", "grant")
        resource = self._resource()
        self._expect_keyword("TO", "grant")
        principal = self._principal()

        grant_option = False
        if self._match_keyword("WITH"):
            self._expect_keyword("GRANT", "grant_option")
            self._expect_keyword("OPTION", "grant_option")
            grant_option = True

        row_filter = None
        if self._check_keyword("WHERE"):
            row_filter = self._row_filter()

        return GrantStatement(
            actions=actions,
            resource=resource,
            principal=principal,
            grant_option=grant_option,
            row_filter=row_filter,
        )

    def _revoke(self) -> RevokeStatement:
        self._expect_keyword("REVOKE", "revoke")
        actions = self._actions()
        self._expect_keyword("ON", "revoke")
        resource = self._resource()
        self._expect_keyword("FROM", "revoke")
        principal = self._principal()
        return RevokeStatement(actions=actions, resource=resource, principal=principal)

    def _create(self) -> Union[CreateRoleStatement, CreateTagStatement]:
        self._expect_keyword("CREATE", "create")
        if self._match_keyword("ROLE"):
            return CreateRoleStatement(name=self._expect(IDENT, "role_name", "role name").value)
        if self._match_keyword("TAG"):
            name = self._tag_name()
            self._expect_keyword("VALUES", "create_tag")
            values = self._value_list("tag_values", allow_empty=True)
            return CreateTagStatement(name=name, values=values)
        raise self._fail("ROLE or TAG", "create")

    def _drop(self) -> Union[DropRoleStatement, DropTagStatement]:
        self._expect_keyword("DROP", "drop")
        if self._match_keyword("ROLE"):
            return DropRoleStatement(name=self._expect(IDENT, "role_name", "role name").value)
        if self._match_keyword("TAG"):
            return DropTagStatement(name=self._tag_name())
        raise self._fail("ROLE or TAG", "drop")

    def _show(self) -> Union[ShowPermissionsStatement, ShowRolesStatement, ShowTagsStatement]:
        self._expect_keyword("SHOW", "show")
        if self._match_keyword("PERMISSIONS"):
            principal = None
            if self._match_keyword("FOR"):
                principal = self._principal()
            return ShowPermissionsStatement(principal=principal)
        if self._match_keyword("ROLES"):
            return ShowRolesStatement()
        if self._match_keyword("TAGS"):
            return ShowTagsStatement()
        raise self._fail("PERMISSIONS, ROLES or TAGS", "show")

    def _alter(self) -> AlterRoleStatement:
        self._expect_keyword("ALTER", "alter_role")
        self._expect_keyword("ROLE", "alter_role")
        name = self._expect(IDENT, "role_name", "role name").value
        if not self._check_keyword("ADD", "REMOVE"):
            raise self._fail("ADD or REMOVE", "alter_role")
        operation = self._advance().upper
        self._expect_keyword("USER", "alter_role")
        user = self._expect_string("alter_role", "quoted user identifier")
        return AlterRoleStatement(name=name, operation=operation, user=user)

    # -- clauses -------------------------------------------------------------

    def _actions(self) -> List[Action]:
        actions = [self._action()]
        while self._check(COMMA):
            self._advance()
            actions.append(self._action())
        return actions

    def _action(self) -> Action:
        token = self._expect(IDENT, "action", "action")
        try:
            return Action.from_token(token.value)
        except UnknownActionError:
            raise UnknownActionError(token.value, token.position) from None

    def _resource(self) -> Resource:
        token = self._current()

        if token.type == STRING:
            return DataLocationResource(path=self._expect_string("resource", "quoted data location"))

        if self._check_keyword("DATABASE") and self._peek().type != DOT:
            self._advance()
            return DatabaseResource(name=self._expect(IDENT, "database", "database name").value)

        if self._check_keyword("RESOURCES") and self._peek().type != DOT:
            self._advance()
            self._expect_keyword("TAGGED", "tagged_resource")
            conditions = [self._tag_condition()]
            while self._match_keyword("AND"):
                conditions.append(self._tag_condition())
            return TaggedResource(tag_conditions=conditions)

        if token.type == IDENT:
            self._advance()
            if not self._check(DOT):
                raise UnknownResourceKindError(token.value, token.position)
            self._advance()
            table = self._expect(IDENT, "table", "table name").value
            columns = None
            if self._check(LPAREN):
                columns = self._value_list("columns", allow_identifiers=True)
            return TableResource(database=token.value, name=table, columns=columns)

        raise self._fail("resource", "resource")

    def _principal(self) -> Principal:
        token = self._current()
        if token.type != IDENT:
            raise self._fail("principal", "principal")
        self._advance()

        kind = token.upper
        if kind == "ROLE":
            return RolePrincipal(name=self._expect(IDENT, "role_name", "role name").value)
        if kind == "USER":
            return UserPrincipal(identifier=self._expect_string("principal", "quoted user identifier"))
        if kind == "GROUP":
            return SamlGroupPrincipal(name=self._expect_string("principal", "quoted group name"))
        if kind == "EXTERNAL_ACCOUNT":
            return ExternalAccountPrincipal(
                account_id=self._expect_string("principal", "quoted account id")
            )
        if kind == "TAGGED":
            key, values = self._tag_condition()
            return TaggedPrincipal(tag_key=key, tag_values=values)
        raise UnknownPrincipalKindError(token.value, token.position)

    def _tag_condition(self) -> Tuple[str, List[str]]:
        key = self._tag_name()
        self._expect_keyword("IN", "tag_condition")
        return key, self._value_list("tag_condition")

    def _tag_name(self) -> str:
        token = self._expect(IDENT, "tag_name", "tag name")
        if not TAG_KEY_PATTERN.match(token.value):
            raise StatementParseError(
                f"Invalid tag name '{token.value}': must start with a letter and contain "
                "only alphanumeric characters and underscores",
                rule="tag_name",
                position=token.position,
            )
        return token.value

    def _row_filter(self) -> RowFilter:
        token = self._expect_keyword("WHERE", "row_filter")
        expression = self._rest(token)
        if expression.endswith(";"):
            expression = expression[:-1].rstrip()
        if not expression:
            raise StatementParseError("WHERE requires a filter expression", rule="row_filter", position=token.position)
        try:
            parse_filter(expression)
        except FilterParseError as e:
            raise StatementParseError(
                f"Invalid row filter: {e.message}", rule="row_filter", position=token.position
            ) from e
        return RowFilter(expression=expression)


# =============================================================================
# PUBLIC API
# =============================================================================

def parse_statement(text: str) -> Statement:
    """
    Parse one statement.

    Args:
        text: Statement text, with or without a trailing ';'

    Returns:
        The structured statement

    Raises:
        StatementParseError: On the first structural error (or one of its
            subclasses for unknown actions, principal kinds and resource kinds),
            including values the statement models reject
    """
    try:
        statement = _Parser(text).parse()
    except ValidationError as e:
        error = e.errors()[0]
        field = ".".join(str(part) for part in error["loc"]) or e.title
        raise StatementParseError(f"Invalid {field}: {error['msg']}", rule="statement") from e
    logger.debug(f"Parsed {statement.kind} statement")
    return statement


def _strip_comment(line: str) -> str:
    index = find_outside_quotes(line, "--")
    return line if index == -1 else line[:index]


def parse_script(text: str) -> List[Statement]:
    """
    Parse a script of ';'-separated statements.

    Blank lines and ``--`` comments are ignored.
    """
    body = "\n".join(_strip_comment(line) for line in text.splitlines())
    statements = []
    for chunk in split_outside_quotes(body, ";"):
        if chunk.strip():
            statements.append(parse_statement(chunk))
    logger.debug(f"Parsed script with {len(statements)} statements")
    return statements
