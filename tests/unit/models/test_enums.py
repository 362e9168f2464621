"""
Unit tests for enumerations.
"""

import pytest

from lakekit.errors import StatementParseError, UnknownActionError
from lakekit.models import Action


class TestActionTokens:
    """Tests for mapping statement tokens to actions."""

    @pytest.mark.parametrize("action", list(Action))
    def test_every_action_has_token(self, action: Action) -> None:
        """Every action round-trips through its statement token."""
        assert Action.from_token(action.value) is action

    def test_case_insensitive(self) -> None:
        """Tokens are matched case-insensitively."""
        assert Action.from_token("create_table") is Action.CREATE_TABLE

    def test_unknown_token(self) -> None:
        """Unknown tokens raise UnknownActionError, a statement parse error."""
        with pytest.raises(UnknownActionError) as exc_info:
            Action.from_token("TRUNCATE")
        assert isinstance(exc_info.value, StatementParseError)
        assert exc_info.value.token == "TRUNCATE"
