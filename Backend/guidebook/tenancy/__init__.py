"""
Multi-tenancy package for Guidebook.

This package provides the tenant isolation primitives every outfitter
route is built on.

Modules:
    context: TenantContext resolution and role dependencies
    config: Tenancy constants (tenant column, forbidden payload keys)
    queries: Tenant-scoped query helpers and entity operations
    ownership: Ownership guard for id-addressed mutations
    audit: Offline lint that flags unscoped data access
"""

from .context import (
    TenantContext,
    get_tenant_context,
    require_admin,
    require_member,
    require_self_or_admin,
)
from .ownership import assert_owned, drop_foreign_rows, is_owned
from .queries import (
    # Composable helpers
    clean_payload,
    create_scoped,
    delete_scoped,
    get_scoped,
    list_scoped,
    require_reference,
    scoped_select,
    tenant_filter,
    update_scoped,
)

__all__ = [
    # Context
    "TenantContext",
    "get_tenant_context",
    "require_admin",
    "require_member",
    "require_self_or_admin",
    # Ownership
    "assert_owned",
    "is_owned",
    "drop_foreign_rows",
    # Query helpers
    "clean_payload",
    "create_scoped",
    "delete_scoped",
    "get_scoped",
    "list_scoped",
    "require_reference",
    "scoped_select",
    "tenant_filter",
    "update_scoped",
]
