"""Case-insensitive substring matching for user-supplied search text.

Search text is matched literally: LIKE wildcards in the input are escaped so
"50%" finds "50%" and not every row starting with "50".
"""

from sqlalchemy import ColumnElement, or_
from sqlalchemy.orm import InstrumentedAttribute

LIKE_ESCAPE = "\\"


def escape_like(text: str) -> str:
    return (
        text.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )


def icontains(column: InstrumentedAttribute, text: str) -> ColumnElement[bool]:
    return column.ilike(f"%{escape_like(text)}%", escape=LIKE_ESCAPE)


def matches_any(text: str, *columns: InstrumentedAttribute) -> ColumnElement[bool]:
    """Build an OR of icontains over the given columns."""
    return or_(*(icontains(column, text) for column in columns))
