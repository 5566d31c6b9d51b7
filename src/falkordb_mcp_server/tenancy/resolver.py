"""
Tenant-aware resource name resolution.

Maps a logical graph or key name to the physical name used against the
backend, and filters backend listings back to what a tenant may see.
Physical names are ``<tenant><separator><logical>``; reversing that split
happens at the first separator.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence

DEFAULT_SEPARATOR = "_"


@dataclass(frozen=True)
class ExtractedName:
    """Tenant and logical name recovered from a physical name."""

    tenant_id: str
    logical_name: str


class TenantGraphResolver:
    """
    Resolve logical resource names to per-tenant physical names.

    Args:
        multi_tenancy_enabled: Master switch for tenant isolation
        prefix_enabled: Whether tenant prefixes are applied to names
        separator: Character placed between tenant id and logical name
    """

    def __init__(
        self,
        multi_tenancy_enabled: bool = False,
        prefix_enabled: bool = False,
        separator: str = DEFAULT_SEPARATOR,
    ):
        self.multi_tenancy_enabled = multi_tenancy_enabled
        self.prefix_enabled = prefix_enabled
        self.separator = separator

    @classmethod
    def from_config(cls, config) -> "TenantGraphResolver":
        """Create a resolver from the multi-tenancy configuration section."""
        return cls(
            multi_tenancy_enabled=config.multi_tenancy.enabled,
            prefix_enabled=config.multi_tenancy.tenant_graph_prefix,
        )

    @property
    def active(self) -> bool:
        """Whether names are rewritten at all."""
        return self.multi_tenancy_enabled and self.prefix_enabled

    def resolve(self, logical_name: str, tenant_id: Optional[str] = None) -> str:
        """
        Compute the physical name for a logical name.

        An empty tenant id still counts as present and yields a name
        starting with the separator.
        """
        if not self.active or tenant_id is None:
            return logical_name
        return f"{tenant_id}{self.separator}{logical_name}"

    def extract(self, physical_name: str) -> Optional[ExtractedName]:
        """Split a physical name into tenant id and logical name."""
        if not self.active:
            return None

        tenant_id, sep, logical_name = physical_name.partition(self.separator)
        if not sep:
            return None
        return ExtractedName(tenant_id=tenant_id, logical_name=logical_name)

    def filter_for_tenant(
        self, all_names: Sequence[str], tenant_id: Optional[str] = None
    ) -> List[str]:
        """
        Restrict a backend listing to the names visible to a tenant.

        Without a tenant only unscoped names (no separator) are returned;
        with a tenant only that tenant's names are returned, prefix removed.
        Order is preserved.
        """
        if not self.active:
            return list(all_names)

        if tenant_id is None:
            return [name for name in all_names if self.separator not in name]

        prefix = f"{tenant_id}{self.separator}"
        return [name[len(prefix):] for name in all_names if name.startswith(prefix)]

    def validate_access(
        self, logical_name: str, tenant_id: Optional[str], all_names: Sequence[str]
    ) -> bool:
        """Check whether the resolved name exists in the backend listing."""
        return self.resolve(logical_name, tenant_id) in all_names
