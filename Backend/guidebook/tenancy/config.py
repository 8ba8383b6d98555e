"""
Tenancy configuration constants.

There is deliberately no default outfitter id here. A request whose tenant
cannot be resolved from its credential is rejected.
"""

# Column every tenant-scoped table carries
TENANT_COLUMN: str = "outfitter_id"

# Payload keys a client might use to smuggle a tenant id onto the write path.
# They are stripped from create and update payloads before persistence.
TENANT_PAYLOAD_KEYS: frozenset[str] = frozenset(
    {"outfitter_id", "outfitterId", "tenant_id", "tenantId"}
)

# Server-assigned keys that are never accepted from a payload
FORBIDDEN_PAYLOAD_KEYS: frozenset[str] = TENANT_PAYLOAD_KEYS | {"id"}

# Security event names written to the log
CROSS_TENANT_ATTEMPT = "CROSS_TENANT_ATTEMPT"
TENANT_FIELD_IN_PAYLOAD = "TENANT_FIELD_IN_PAYLOAD"
FOREIGN_ROW_FILTERED = "FOREIGN_ROW_FILTERED"
