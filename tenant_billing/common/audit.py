"""
Audit / soft-delete envelope helpers

Every mapped entity carries created_at, updated_at and is_deleted (see
common.mixins.AuditMixin). Mutations of those fields go through the free
functions below so that domain methods and repositories share one rule.
"""
from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def touch(entity) -> None:
    """Stamp the update time after a domain mutation"""
    entity.updated_at = utcnow()


def mark_deleted(entity) -> None:
    """Logical delete: flip the flag, never remove the row"""
    entity.is_deleted = True
    touch(entity)


def restore(entity) -> None:
    entity.is_deleted = False
    touch(entity)


def not_deleted(model):
    """Predicate applied by repositories on every standard read"""
    return model.is_deleted.is_(False)
