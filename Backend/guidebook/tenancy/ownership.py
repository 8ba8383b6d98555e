"""
Ownership verification for id-addressed operations.

assert_owned() is called after an entity has been fetched inside the
current transaction and before it is mutated. The tenant-filtered query
should already have excluded foreign rows; this guard catches the case
where a query was written without the filter.
"""

import logging
from typing import Iterable, Optional, TypeVar

from ..core.errors import NotFoundError
from .config import CROSS_TENANT_ATTEMPT, FOREIGN_ROW_FILTERED, TENANT_COLUMN
from .context import TenantContext

logger = logging.getLogger(__name__)

T = TypeVar("T")


def log_security_event(event: str, ctx: TenantContext, **details) -> None:
    """Write a security event with the acting tenant and user to the log."""
    detail = " ".join(f"{key}={value}" for key, value in details.items())
    logger.warning(
        f"[SECURITY] {event} outfitter={ctx.outfitter_id} user={ctx.user_id} {detail}".rstrip()
    )


def is_owned(entity: object, ctx: TenantContext) -> bool:
    return entity is not None and getattr(entity, TENANT_COLUMN, None) == ctx.outfitter_id


def assert_owned(entity: Optional[T], ctx: TenantContext, resource_type: str = "Resource") -> T:
    """
    Raise NotFoundError unless the entity belongs to the caller's outfitter.

    A missing entity and a foreign one produce the same error so the
    response does not reveal which ids exist in other outfitters.
    """
    if entity is None:
        raise NotFoundError.for_resource(resource_type)
    if not is_owned(entity, ctx):
        log_security_event(
            CROSS_TENANT_ATTEMPT,
            ctx,
            resource=resource_type,
            id=getattr(entity, "id", None),
            owner=getattr(entity, TENANT_COLUMN, None),
        )
        raise NotFoundError.for_resource(resource_type)
    return entity


def drop_foreign_rows(rows: Iterable[T], ctx: TenantContext, resource_type: str = "Resource") -> list[T]:
    """Remove any row not owned by the caller, logging each one removed."""
    owned = []
    for row in rows:
        if is_owned(row, ctx):
            owned.append(row)
        else:
            log_security_event(
                FOREIGN_ROW_FILTERED,
                ctx,
                resource=resource_type,
                id=getattr(row, "id", None),
                owner=getattr(row, TENANT_COLUMN, None),
            )
    return owned
