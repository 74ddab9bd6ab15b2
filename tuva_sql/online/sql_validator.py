import logging
from typing import Optional

import sqlglot
from sqlglot.errors import SqlglotError
from sqlglot.tokens import TokenType

from ..exceptions import SqlRejectedError
from ..models import ValidationResult

# Keywords that must never appear outside a literal or quoted identifier.
BLOCKED_KEYWORDS = frozenset({
    "INSERT", "UPDATE", "DELETE", "DROP", "CREATE", "ALTER", "TRUNCATE",
    "ATTACH", "PRAGMA",
    "DETACH", "MERGE", "GRANT", "REVOKE", "VACUUM", "COPY", "CALL",
    "EXEC", "EXECUTE", "INTO",
})

ALLOWED_LEADING_TOKENS = frozenset({TokenType.SELECT, TokenType.WITH})

LITERAL_TOKENS = frozenset({
    TokenType.STRING,
    TokenType.NATIONAL_STRING,
    TokenType.RAW_STRING,
    TokenType.BIT_STRING,
    TokenType.HEX_STRING,
    TokenType.BYTE_STRING,
    TokenType.HEREDOC_STRING,
    TokenType.IDENTIFIER,
})


class SQLValidator:
    """
    Gatekeeper that only lets a single read-only query through.

    This is a conservative keyword check over the sqlglot token stream, not a
    parser: anything it cannot classify as a plain SELECT (or WITH ... SELECT)
    is rejected. Vendor syntax that hides writes behind other keywords is not
    detected, so execution should also use read-only credentials.
    """

    def __init__(self, dialect: Optional[str] = None):
        """Initialize SQL validator."""
        self.logger = logging.getLogger(__name__)
        self.dialect = dialect

    def validate(self, statement: str) -> ValidationResult:
        """
        Classify a candidate statement.

        Args:
            statement: SQL text produced by the authoring gateway

        Returns:
            ValidationResult carrying the original statement and, on
            rejection, the rule that triggered and a readable reason
        """
        if not statement or not statement.strip():
            return self._reject(statement, "empty", "Statement is empty")

        try:
            tokens = sqlglot.tokenize(statement.strip(), read=self.dialect)
        except SqlglotError as e:
            return self._reject(statement, "unparseable", f"Statement could not be tokenized: {e}")

        if not tokens:
            return self._reject(statement, "empty", "Statement contains no SQL")

        for token in tokens:
            if token.token_type in LITERAL_TOKENS:
                continue
            keyword = token.text.upper()
            if keyword in BLOCKED_KEYWORDS:
                return self._reject(
                    statement,
                    "blocked_keyword",
                    f"Statement contains the forbidden keyword {keyword}"
                )

        for index, token in enumerate(tokens):
            if token.token_type == TokenType.SEMICOLON and index != len(tokens) - 1:
                return self._reject(
                    statement,
                    "multiple_statements",
                    "Statement separator ';' is followed by another statement"
                )

        # Token type, not text: a quoted "select" identifier is not the keyword
        first = tokens[0]
        if first.token_type not in ALLOWED_LEADING_TOKENS:
            return self._reject(
                statement,
                "not_select",
                f"Statement must start with SELECT or WITH, found {first.text}"
            )

        if first.token_type == TokenType.WITH and not any(
            token.token_type == TokenType.SELECT for token in tokens[1:]
        ):
            return self._reject(statement, "not_select", "WITH clause is not followed by a SELECT")

        self.logger.debug("SQL safety validation passed")
        return ValidationResult(accepted=True, statement=statement)

    def ensure_read_only(self, statement: str) -> str:
        """
        Return the statement unchanged if it is accepted.

        Raises:
            SqlRejectedError: the statement is not a single read-only query
        """
        result = self.validate(statement)
        if not result.accepted:
            raise SqlRejectedError(result.reason, result.rule, statement)
        return result.statement

    def _reject(self, statement: str, rule: str, reason: str) -> ValidationResult:
        self.logger.warning(f"SQL rejected ({rule}): {reason}")
        return ValidationResult(accepted=False, statement=statement, rule=rule, reason=reason)
