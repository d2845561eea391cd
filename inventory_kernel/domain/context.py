"""
TenantContext -- authenticated tenant and actor for one operation.

Every service call takes a TenantContext built from the authenticated session
by the caller's middleware.  Tenant identifiers inside request payloads are
never trusted: ``strip_tenant_fields`` removes them before a payload is
parsed.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from inventory_kernel.exceptions import TenantContextError

# Payload keys that could smuggle a tenant id past the session.
TENANT_PAYLOAD_KEYS: frozenset[str] = frozenset(
    {"tenant_id", "tenantId", "company_id", "companyId"}
)


@dataclass(frozen=True)
class TenantContext:
    """Tenant and acting user derived from the authenticated session."""

    tenant_id: UUID
    actor_id: UUID
    correlation_id: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.tenant_id, UUID):
            raise TenantContextError("tenant_id must be a UUID")
        if not isinstance(self.actor_id, UUID):
            raise TenantContextError("actor_id must be a UUID")


def require_context(ctx: TenantContext | None) -> TenantContext:
    """
    Return ``ctx`` or raise if the operation has no tenant context.

    Raises:
        TenantContextError: if ``ctx`` is None or not a TenantContext.
    """
    if ctx is None:
        raise TenantContextError()
    if not isinstance(ctx, TenantContext):
        raise TenantContextError(
            f"expected TenantContext, got {type(ctx).__name__}"
        )
    return ctx


def strip_tenant_fields(payload: Mapping[str, Any]) -> dict[str, Any]:
    """Return a copy of ``payload`` without any tenant identifier keys."""
    return {k: v for k, v in payload.items() if k not in TENANT_PAYLOAD_KEYS}
