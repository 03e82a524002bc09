from __future__ import annotations

from dataclasses import dataclass

from ..core.constants import DEFAULT_MAX_SCAN_SESSIONS_PER_DAY, DEFAULT_SCAN_COOLDOWN_SECONDS
from ..core.enums import Flow
from .policies.base import AdmissionPolicy
from .policies.geofence_policy import GeofencePolicy
from .policies.scan_toggle_policy import ScanTogglePolicy


@dataclass
class AdmissionPolicyFactory:
    """Factory Pattern: pick the admission policy for the caller's flow."""

    cooldown_seconds: int = DEFAULT_SCAN_COOLDOWN_SECONDS
    max_sessions_per_day: int = DEFAULT_MAX_SCAN_SESSIONS_PER_DAY

    def for_flow(self, flow: Flow) -> AdmissionPolicy:
        if flow == Flow.GEOFENCE:
            return GeofencePolicy()
        if flow == Flow.SCAN:
            return ScanTogglePolicy(
                cooldown_seconds=self.cooldown_seconds,
                max_sessions_per_day=self.max_sessions_per_day,
            )
        raise ValueError(f"Unknown flow: {flow!r}")
