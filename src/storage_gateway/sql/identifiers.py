"""SQL identifier sanitizing.

Table, column and sort names arrive from the request path and query string.
They are reduced to ``[A-Za-z0-9_]`` before they are placed in SQL text;
values never go through here, they are always bound as parameters.
"""

from __future__ import annotations

import re

_UNSAFE_CHARACTERS = re.compile(r"[^A-Za-z0-9_]")


def sanitize_identifier(identifier: str) -> str:
    """Strip every character outside ``[A-Za-z0-9_]``.

    Args:
        identifier: User-supplied table, column or sort name.

    Returns:
        The identifier with unsafe characters removed. May be empty.
    """
    return _UNSAFE_CHARACTERS.sub("", identifier)


def quote_keyword(identifier: str) -> str:
    """Sanitize an identifier and quote it so reserved words are usable as names.

    Args:
        identifier: User-supplied table name.

    Returns:
        Quoted identifier, e.g. ``"order"`` for ``order``.
    """
    return f'"{sanitize_identifier(identifier)}"'
