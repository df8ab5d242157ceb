"""Identifier derivation for declared event and field names."""

from __future__ import annotations

import keyword
import re

from .types import RESERVED_NAMES

IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# Words SQLite reserves or gives a meaning of their own, which cannot be used
# unquoted as table or column names
SQL_KEYWORDS = frozenset(
    {
        "abort", "action", "add", "after", "all", "alter", "always", "analyze", "and",
        "as", "asc", "attach", "autoincrement", "before", "begin", "between", "by",
        "cascade", "case", "cast", "check", "collate", "column", "commit", "conflict",
        "constraint", "create", "cross", "current", "current_date", "current_time",
        "current_timestamp", "database", "default", "deferrable", "deferred", "delete",
        "desc", "detach", "distinct", "do", "drop", "each", "else", "end", "escape",
        "except", "exclude", "exclusive", "exists", "explain", "fail", "filter", "first",
        "following", "for", "foreign", "from", "full", "generated", "glob", "group",
        "groups", "having", "if", "ignore", "immediate", "in", "index", "indexed",
        "initially", "inner", "insert", "instead", "intersect", "into", "is", "isnull",
        "join", "key", "last", "left", "like", "limit", "match", "materialized",
        "natural", "no", "not", "nothing", "notnull", "null", "nulls", "of", "offset",
        "on", "or", "order", "others", "outer", "over", "partition", "plan", "pragma",
        "preceding", "primary", "query", "raise", "range", "recursive", "references",
        "regexp", "reindex", "release", "rename", "replace", "restrict", "returning",
        "right", "rollback", "row", "rows", "savepoint", "select", "set",
        "table", "temp", "temporary", "then", "ties", "to", "transaction", "trigger",
        "unbounded", "union", "unique", "update", "using", "vacuum", "values", "view",
        "virtual", "when", "where", "window", "with", "without",
    }
)

_FIRST_CAP = re.compile(r"(.)([A-Z][a-z]+)")
_ALL_CAP = re.compile(r"([a-z0-9])([A-Z])")


def is_identifier(name: str) -> bool:
    """Whether name can be used unquoted as a table or column name."""
    if not IDENTIFIER_RE.match(name):
        return False
    lowered = name.lower()
    # sqlite_ names belong to SQLite internal tables
    return lowered not in SQL_KEYWORDS and not lowered.startswith("sqlite_")


def to_camel(name: str) -> str:
    """page_view -> PageView, userID -> UserID."""
    parts = [p for p in name.split("_") if p]
    result = "".join(p[0].upper() + p[1:] for p in parts)
    if not result or result[0].isdigit():
        result = "_" + result
    return result


def to_snake(name: str) -> str:
    """UserId -> user_id, HTTPRequest -> http_request."""
    s = _FIRST_CAP.sub(r"\1_\2", name)
    s = _ALL_CAP.sub(r"\1_\2", s).lower()
    return re.sub(r"_+", "_", s)


def field_identifier(name: str) -> str:
    """Attribute name for a declared field.

    Keywords and names taken by the generated base class get a trailing
    underscore.
    """
    ident = to_snake(name)
    if keyword.iskeyword(ident) or ident in RESERVED_NAMES:
        ident += "_"
    return ident
