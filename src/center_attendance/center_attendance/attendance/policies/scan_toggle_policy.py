from __future__ import annotations

import math
from typing import Optional

from ...centers.model import Center
from ...common.geo import GeoPoint
from ...core.constants import DEFAULT_MAX_SCAN_SESSIONS_PER_DAY, DEFAULT_SCAN_COOLDOWN_SECONDS
from ...core.enums import AdmissionAction, ErrorCode, Flow, Intent
from ...core.exceptions import AdmissionRejected, ValidationError
from .base import AdmissionDecision, AdmissionPolicy, DaySnapshot


class ScanTogglePolicy(AdmissionPolicy):
    """Desk scan: toggles the day's session, no distance check.

    Re-scans inside the cooldown are absorbed and the number of sessions per
    day is capped.
    """

    flow = Flow.SCAN

    def __init__(
        self,
        *,
        cooldown_seconds: int = DEFAULT_SCAN_COOLDOWN_SECONDS,
        max_sessions_per_day: int = DEFAULT_MAX_SCAN_SESSIONS_PER_DAY,
    ):
        self.cooldown_seconds = int(cooldown_seconds)
        self.max_sessions_per_day = int(max_sessions_per_day)

    def decide(
        self,
        *,
        intent: Intent,
        snapshot: DaySnapshot,
        center: Center,
        position: Optional[GeoPoint],
    ) -> AdmissionDecision:
        if intent != Intent.TOGGLE:
            raise ValidationError(f"Scan flow does not support {intent.value}")

        last = snapshot.last_action_at
        if last is not None:
            elapsed = (snapshot.now - last).total_seconds()
            if elapsed < self.cooldown_seconds:
                raise AdmissionRejected(
                    "Scanned too soon after the previous action",
                    code=ErrorCode.TOO_SOON,
                    retry_after_seconds=max(1, math.ceil(self.cooldown_seconds - elapsed)),
                )

        if snapshot.open_session is not None:
            return AdmissionDecision(action=AdmissionAction.CHECK_OUT)

        if snapshot.sessions_count >= self.max_sessions_per_day:
            raise AdmissionRejected(
                "Daily session limit reached",
                code=ErrorCode.DAILY_LIMIT_REACHED,
                max_sessions=self.max_sessions_per_day,
            )
        return AdmissionDecision(action=AdmissionAction.CHECK_IN)
