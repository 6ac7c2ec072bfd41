"""
db/params.py
------------
Named-parameter handling for caller-supplied queries.

Queries are written with ``@name`` placeholders and a plain mapping of
values. Before binding, every parameter name is normalized to carry the
leading ``@`` marker, then the placeholders are rewritten into psycopg2's
``%(name)s`` form.
"""

import re
from typing import Any, Mapping, Optional

PARAM_MARKER = "@"

# Quoted text and comments are matched first so that placeholders inside
# them are never rewritten.
_TOKEN_RE = re.compile(
    r"""
      '(?:[^']|'')*'          # string literal
    | "(?:[^"]|"")*"          # quoted identifier
    | --[^\n]*                # line comment
    | /\*.*?\*/               # block comment
    | @(?P<name>[A-Za-z_]\w*) # placeholder
    | %                       # literal percent sign
    """,
    re.VERBOSE | re.DOTALL,
)


def normalize_parameter_name(name: str) -> str:
    """
    Return ``name`` with the parameter marker prefixed.

    A name that already starts with the marker is returned unchanged, so
    normalizing twice is the same as normalizing once.

    Raises:
        ValueError: If the name is empty or consists only of the marker.
    """
    if not name or name == PARAM_MARKER:
        raise ValueError("Parameter name must not be empty.")
    if name.startswith(PARAM_MARKER):
        return name
    return PARAM_MARKER + name


def normalize_parameters(params: Optional[Mapping[str, Any]]) -> dict[str, Any]:
    """
    Normalize every key of a parameter map.

    Args:
        params: Mapping of parameter name to value, or None.

    Returns:
        A new dict whose keys all carry the marker.

    Raises:
        ValueError: If two keys collapse to the same name (e.g. "id" and "@id").
    """
    normalized: dict[str, Any] = {}
    for name, value in (params or {}).items():
        key = normalize_parameter_name(name)
        if key in normalized:
            raise ValueError(f"Duplicate parameter name: {key}")
        normalized[key] = value
    return normalized


def bind_parameters(
    query: str, params: Optional[Mapping[str, Any]] = None
) -> tuple[str, Optional[dict[str, Any]]]:
    """
    Prepare a query and its parameters for ``cursor.execute``.

    Args:
        query: SQL text using ``@name`` placeholders.
        params: Optional mapping of parameter name to value.

    Returns:
        ``(sql, args)`` where ``sql`` uses ``%(name)s`` placeholders and
        ``args`` is the marker-less argument dict. When there are no
        parameters the query is returned verbatim with ``args`` set to None,
        so psycopg2 leaves ``%`` characters alone.
    """
    normalized = normalize_parameters(params)
    if not normalized:
        return query, None

    def _replace(match: re.Match) -> str:
        token = match.group(0)
        name = match.group("name")
        if name is not None:
            if PARAM_MARKER + name in normalized:
                return f"%({name})s"
            return token
        # psycopg2 scans the whole statement for %, literals included.
        return token.replace("%", "%%")

    sql = _TOKEN_RE.sub(_replace, query)
    args = {key[len(PARAM_MARKER):]: value for key, value in normalized.items()}
    return sql, args
