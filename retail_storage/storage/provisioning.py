"""
Provisioning results collected per capability.

Backends record one entry per provisioned resource; a capability is
available only when every one of its resources was provisioned.
"""
from dataclasses import dataclass, field


class Capability:
    """Capability names used in provisioning reports and errors."""

    TABLES = "tables"
    BLOBS = "blobs"
    QUEUES = "queues"
    FILE_SHARE = "file_share"


@dataclass
class ProvisioningReport:
    """Outcome of a backend's initialize() step."""

    provisioned: dict[str, list[str]] = field(default_factory=dict)
    failures: dict[str, list[str]] = field(default_factory=dict)
    skipped: dict[str, str] = field(default_factory=dict)

    def record_success(self, capability: str, resource: str) -> None:
        self.provisioned.setdefault(capability, []).append(resource)

    def record_failure(self, capability: str, resource: str, error: str) -> None:
        self.failures.setdefault(capability, []).append(f"{resource}: {error}")

    def record_skipped(self, capability: str, reason: str) -> None:
        self.skipped[capability] = reason

    def is_available(self, capability: str) -> bool:
        return (
            capability in self.provisioned
            and capability not in self.failures
            and capability not in self.skipped
        )

    @property
    def ok(self) -> bool:
        return not self.failures
