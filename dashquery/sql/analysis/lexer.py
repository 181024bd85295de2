"""
Lightweight SQL lexing built on the sqlglot tokenizer.

This is deliberately not a parser. The helpers answer token-level questions
only:
- strip comments without touching comment markers inside quoted text
- list the words of a statement that sit outside string literals
- detect an explicit ``LIMIT <n>`` clause

When the tokenizer cannot make sense of the text (e.g. an unterminated
string), the helpers fall back to plain regex scanning over the whole text,
which is stricter: string literal contents are then treated as code.
"""

import re
from typing import Iterator, List, Optional

import sqlglot
from loguru import logger
from sqlglot.errors import TokenError
from sqlglot.tokens import Token, TokenType

_SQLGLOT_DIALECTS = {
    "postgresql": "postgres",
    "postgres": "postgres",
    "mysql": "mysql",
}

# Quoted spans are matched first so that "--" or "/*" inside them is kept
_COMMENT_OR_QUOTED = re.compile(
    r"""('(?:[^']|'')*')"""
    r"""|("(?:[^"]|"")*")"""
    r"""|(`(?:[^`]|``)*`)"""
    r"""|(--[^\n]*)"""
    r"""|(/\*.*?\*/)""",
    re.DOTALL,
)

_WORD = re.compile(r"[A-Za-z_][A-Za-z0-9_$]*")
_FIRST_WORD = re.compile(r"^\s*(\w+)")
_LIMIT_CLAUSE = re.compile(r"\blimit\s+\d+", re.IGNORECASE)


def strip_comments(sql: str) -> str:
    """
    Remove ``--`` line comments and ``/* */`` block comments, then trim.

    Block comments become a single space so adjacent tokens stay apart.

    Example:
        >>> strip_comments("SELECT 1 -- one\\n/* two */ FROM t")
        'SELECT 1 \\n  FROM t'
    """

    def _replace(match: re.Match) -> str:
        if match.group(4) is not None:
            return ""
        if match.group(5) is not None:
            return " "
        return match.group(0)

    return _COMMENT_OR_QUOTED.sub(_replace, sql or "").strip()


def tokenize(sql: str, dialect: str = "postgresql") -> List[Token]:
    """Tokenize with the sqlglot tokenizer of the given dialect. Raises TokenError."""
    return sqlglot.tokenize(sql, read=_SQLGLOT_DIALECTS.get((dialect or "").lower(), "postgres"))


def _is_string_literal(token: Token) -> bool:
    # STRING, NATIONAL_STRING, RAW_STRING, HEREDOC_STRING, BIT_STRING, ...
    return token.token_type.name.endswith("STRING")


def _code_tokens(sql: str, dialect: str) -> Iterator[Token]:
    """
    Tokens outside string literals. Raises TokenError.

    The tokenizer folds the statement after a command leader (``EXPLAIN``,
    ``SHOW``, ...) into one STRING token; that text is code and is lexed again.
    """
    previous: Optional[Token] = None
    for token in tokenize(sql, dialect):
        if _is_string_literal(token):
            if previous is not None and previous.token_type == TokenType.COMMAND:
                yield from _code_tokens(token.text or "", dialect)
        else:
            yield token
        previous = token


def code_words(sql: str, dialect: str = "postgresql") -> List[str]:
    """
    Lower-cased words that appear outside string literals.

    Quoted identifiers still count: ``"delete"`` yields ``delete``.

    Example:
        >>> code_words("SELECT note FROM t WHERE note = 'drop me'")
        ['select', 'note', 'from', 't', 'where', 'note']
    """
    try:
        tokens = list(_code_tokens(sql, dialect))
    except TokenError as e:
        logger.debug(f"Tokenizer fallback to regex scan: {e}")
        return [w.lower() for w in _WORD.findall(sql or "")]

    words: List[str] = []
    for token in tokens:
        words.extend(w.lower() for w in _WORD.findall(token.text or ""))
    return words


def first_word(sql: str) -> str:
    """First word token of the statement, lower-cased ('' if it starts with punctuation)."""
    match = _FIRST_WORD.match(sql or "")
    return match.group(1).lower() if match else ""


def has_limit(sql: str, dialect: str = "postgresql") -> bool:
    """True when the statement carries an explicit ``LIMIT <n>`` outside string literals."""
    try:
        tokens = list(_code_tokens(sql, dialect))
    except TokenError:
        return bool(_LIMIT_CLAUSE.search(sql or ""))

    for prev, current in zip(tokens, tokens[1:]):
        if prev.token_type == TokenType.LIMIT and current.token_type == TokenType.NUMBER:
            return True
    return False
