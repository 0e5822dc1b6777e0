# query_guard.py
# Best-effort textual checks for KQL before it is sent to Application Insights.
# Not a parser: only the leading table, bracket nesting and row limits are looked at.
import logging
import re
from typing import Iterable, Optional

from config import ALLOWED_TABLES
from models import FetchLimitResult

LOG = logging.getLogger(__name__)

IDENT_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
LEADING_TOKEN_RE = re.compile(r"^[^\s|;]+")
# take/limit at statement start or right after a pipe, as a whole word
USER_LIMIT_RE = re.compile(r"(^|\|)\s*(take|limit)\b", re.IGNORECASE)

REASON_APPLIED = "applied_table_no_user_limit"
REASON_USER_EXPLICIT = "user_explicit"
REASON_NOT_TABLE_FIRST = "not_table_first"
REASON_FETCH_ZERO = "fetch_zero"
REASON_EMPTY_STMT = "empty_stmt"

_OPENERS = {"(": ")", "[": "]"}
_CLOSERS = {")": "(", "]": "["}


class QueryValidationError(ValueError):
    code = "invalid_query"


class EmptyQueryError(QueryValidationError):
    code = "empty_query"


class UnknownTableError(QueryValidationError):
    code = "unknown_table"


class UnbalancedDelimitersError(QueryValidationError):
    code = "unbalanced_delimiters"


def leading_token(stmt: str) -> str:
    m = LEADING_TOKEN_RE.match(stmt.lstrip())
    return m.group(0) if m else ""


def is_known_table(token: str, tables: Optional[Iterable[str]] = None) -> bool:
    if not token or not IDENT_RE.match(token):
        return False
    return token in (ALLOWED_TABLES if tables is None else tables)


def check_balanced_delimiters(query: str) -> None:
    """Raise UnbalancedDelimitersError unless () and [] nest correctly."""
    stack = []
    for pos, ch in enumerate(query):
        if ch in _OPENERS:
            stack.append(ch)
        elif ch in _CLOSERS:
            if not stack:
                raise UnbalancedDelimitersError(f"unmatched closing bracket {ch!r} at position {pos}")
            expected = _CLOSERS[ch]
            if stack[-1] != expected:
                raise UnbalancedDelimitersError(
                    f"mismatched brackets: expected {_OPENERS[stack[-1]]!r} but found {ch!r} at position {pos}"
                )
            stack.pop()
    if stack:
        raise UnbalancedDelimitersError(f"unmatched opening bracket {stack[-1]!r}")


def validate_query(query: str, tables: Optional[Iterable[str]] = None) -> None:
    """
    Raise a QueryValidationError subclass when `query` is empty, does not start
    with a queryable table, or has unbalanced () / [] pairs.
    String literals are not special-cased, so "traces | where m == '('" fails.
    """
    stripped = (query or "").strip()
    if not stripped:
        raise EmptyQueryError("query cannot be empty")

    token = leading_token(stripped)
    if not is_known_table(token, tables):
        known = ", ".join(ALLOWED_TABLES if tables is None else tables)
        raise UnknownTableError(f"query must start with a valid table name ({known}); got '{token}'")

    check_balanced_delimiters(stripped)
    LOG.debug("KQL validated first_token=%s length=%d", token, len(stripped))


def apply_fetch_limit(query: str, max_rows: int, tables: Optional[Iterable[str]] = None) -> FetchLimitResult:
    """
    Append "| take <max_rows>" to the first statement when it starts with a
    known table and carries no take/limit of its own. Anything after the first
    ';' is reattached verbatim.
    """
    if max_rows <= 0:
        return FetchLimitResult(query, False, REASON_FETCH_ZERO)

    first_orig, sep, rest = query.partition(";")
    first = first_orig.strip()
    if not first:
        return FetchLimitResult(query, False, REASON_EMPTY_STMT)
    if not is_known_table(leading_token(first), tables):
        return FetchLimitResult(query, False, REASON_NOT_TABLE_FIRST)
    if USER_LIMIT_RE.search(first):
        return FetchLimitResult(query, False, REASON_USER_EXPLICIT)

    mutated = f"{first_orig} | take {max_rows}"
    return FetchLimitResult(mutated + sep + rest, True, REASON_APPLIED)


def maybe_apply_fetch_limit(query: str, max_rows: int) -> FetchLimitResult:
    """apply_fetch_limit plus a debug line recording the decision."""
    result = apply_fetch_limit(query, max_rows)
    LOG.debug(
        "KQL fetch limit %s first_token=%s limit=%d reason=%s",
        "applied" if result.applied else "not applied", leading_token(query), max_rows, result.reason,
    )
    return result
