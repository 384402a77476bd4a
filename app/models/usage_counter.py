from sqlalchemy import Column, String, Integer, Uuid, Enum as SQLEnum, UniqueConstraint
import uuid
import enum
from .base import Base, TimestampMixin

class ResourceKind(str, enum.Enum):
    """Metered resource types"""
    PRODUCTS = "products"
    CUSTOMERS = "customers"
    INVOICES = "invoices"
    STORAGE_MB = "storageMB"

class UsageCounter(Base, TimestampMixin):
    """Per-tenant counter for a single metered resource"""
    __tablename__ = "usage_counters"
    __table_args__ = (
        UniqueConstraint("tenant_id", "resource_kind", name="uq_usage_counters_tenant_kind"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    tenant_id = Column(String(64), nullable=False, index=True)
    resource_kind = Column(SQLEnum(ResourceKind), nullable=False)
    used = Column(Integer, default=0, nullable=False)
