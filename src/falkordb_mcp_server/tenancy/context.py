"""Per-request caller identity."""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class TenantContext:
    """
    Identity attached to one inbound call.

    ``tenant_id`` is None in legacy mode (API key or stdio), where no
    tenant identity exists.
    """

    tenant_id: Optional[str] = None

    @property
    def has_tenant(self) -> bool:
        """Whether a tenant identity is attached."""
        return self.tenant_id is not None


NO_TENANT = TenantContext()
