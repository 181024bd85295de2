"""
SQL guard - the single gate every candidate statement passes before execution.

Checks, in order:
1. non-empty once comments are stripped
2. a single statement (one trailing semicolon tolerated)
3. no DDL/DML/administrative keyword as a whole word outside string literals
4. led by select/with/show/describe/explain and containing a SELECT
5. bounded by an explicit LIMIT (appended when absent)
"""

import re
from typing import Optional

from loguru import logger

from dashquery.config.constants import FORBIDDEN_KEYWORDS, READ_ONLY_LEADERS
from dashquery.config.settings import settings
from dashquery.sql.analysis.lexer import code_words, first_word, has_limit, strip_comments
from dashquery.utils.errors import GuardViolation, ViolationKind

_TRAILING_SEMICOLON = re.compile(r";\s*$")
_LEADING_SELECT = re.compile(r"^\s*select\b", re.IGNORECASE)
_EXECUTION_HINT = re.compile(r"/\*\+\s*MAX_EXECUTION_TIME", re.IGNORECASE)

READ_ONLY_MESSAGE = "Only read-only SELECT queries are allowed."


def guard_sql(sql: str, max_rows: Optional[int] = None, dialect: str = "postgresql") -> str:
    """
    Validate and normalize a candidate statement.

    Args:
        sql: Candidate SQL (model-generated, rewritten, or user supplied)
        max_rows: Row cap for the injected LIMIT (defaults to settings.sql_max_rows)
        dialect: Connection dialect, selects the tokenizer

    Returns:
        The comment-stripped statement, with ``LIMIT <max_rows>`` appended when
        it had no LIMIT of its own

    Raises:
        GuardViolation: empty | multi_statement | forbidden_keyword | not_read_only

    Example:
        >>> guard_sql("SELECT * FROM orders", max_rows=25)
        'SELECT * FROM orders LIMIT 25'
    """
    cap = int(max_rows or settings.sql_max_rows)

    normalized = strip_comments(sql)
    statement = _TRAILING_SEMICOLON.sub("", normalized, count=1).strip()
    if not statement:
        raise GuardViolation(ViolationKind.EMPTY, "SQL is empty.")

    if ";" in statement:
        logger.warning(f"Guard rejected multi-statement SQL: {statement[:200]}")
        raise GuardViolation(ViolationKind.MULTI_STATEMENT, "SQL must be a single statement.")

    words = code_words(statement, dialect)
    for word in words:
        if word in FORBIDDEN_KEYWORDS:
            logger.warning(f"Guard rejected forbidden keyword '{word}': {statement[:200]}")
            raise GuardViolation(
                ViolationKind.FORBIDDEN_KEYWORD,
                f"Query contains forbidden keyword '{word.upper()}'. {READ_ONLY_MESSAGE}",
            )

    leader = first_word(statement)
    if leader not in READ_ONLY_LEADERS or "select" not in words:
        logger.warning(f"Guard rejected non read-only SQL (leading '{leader}'): {statement[:200]}")
        raise GuardViolation(ViolationKind.NOT_READ_ONLY, READ_ONLY_MESSAGE)

    if has_limit(statement, dialect):
        return statement
    return f"{statement} LIMIT {cap}"


def apply_execution_hint(sql: str, dialect: str, timeout_ms: Optional[int]) -> str:
    """
    Add a MySQL optimizer hint bounding execution time.

    Pure text addition applied after ``guard_sql``; other dialects and
    statements that do not start with SELECT are returned unchanged.

    Example:
        >>> apply_execution_hint("SELECT 1 LIMIT 5", "mysql", 5000)
        'SELECT /*+ MAX_EXECUTION_TIME(5000) */ 1 LIMIT 5'
    """
    if (dialect or "").lower() != "mysql" or not timeout_ms:
        return sql
    if not _LEADING_SELECT.match(sql) or _EXECUTION_HINT.search(sql):
        return sql
    hint = f"/*+ MAX_EXECUTION_TIME({max(1, int(timeout_ms))}) */"
    return _LEADING_SELECT.sub(lambda m: f"{m.group(0)} {hint}", sql, count=1)
