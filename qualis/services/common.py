import uuid

from fastapi import HTTPException
from sqlalchemy import or_


def coerce_uuid(value):
    if value is None:
        return None
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid identifier: {value}")


def apply_pagination(query, limit, offset):
    return query.limit(limit).offset(offset)


def escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def apply_search(query, term: str | None, columns):
    """Case-insensitive substring match of ``term`` against any of ``columns``."""
    if not term or not term.strip():
        return query
    pattern = f"%{escape_like(term.strip())}%"
    return query.filter(or_(*[col.ilike(pattern, escape="\\") for col in columns]))


def paginate(query, page: int, limit: int) -> dict:
    """Run a filtered, ordered query one page at a time.

    ``total`` is counted on the same filters with ordering stripped, so it
    always matches the rows the filters can reach, whatever the page.
    """
    if page < 1:
        raise HTTPException(status_code=400, detail="page must be >= 1")
    if limit < 1:
        raise HTTPException(status_code=400, detail="limit must be >= 1")
    total = query.order_by(None).count()
    items = apply_pagination(query, limit, (page - 1) * limit).all()
    return {
        "items": items,
        "total": total,
        "page": page,
        "limit": limit,
        "has_more": page * limit < total,
    }


def parse_enum(enum_cls, value, field: str = "status"):
    if value is None or isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid {field}: {value}")
