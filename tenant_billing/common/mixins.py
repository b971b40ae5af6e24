"""
Common mixins for multi-tenant models
"""
from sqlalchemy import Column, DateTime, Boolean, ForeignKey
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import declared_attr
from uuid import uuid4

from tenant_billing.common.audit import utcnow


class TenantMixin:
    """Mixin for multi-tenant models that adds tenant_id and ensures tenant isolation"""

    @declared_attr
    def tenant_id(cls):
        # RESTRICT: a company cannot be physically removed while it owns records
        return Column(
            UUID(as_uuid=True),
            ForeignKey("companies.id", ondelete="RESTRICT"),
            nullable=False,
            index=True
        )


class AuditMixin:
    """Audit / soft-delete envelope shared by every entity.

    Only columns live here; mutation helpers are the free functions in
    tenant_billing.common.audit.
    """

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=True)
    is_deleted = Column(Boolean, default=False, nullable=False, index=True)