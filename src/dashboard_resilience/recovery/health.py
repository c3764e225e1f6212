"""
System health tracking for the recovery orchestrator.

Holds the single SystemHealthStatus value. Failures only ever move the
status downward (healthy -> degraded -> critical); it moves back up only
when every failed component has been restored and no system-wide failure
is outstanding.
"""

from __future__ import annotations

import logging
from threading import RLock

from ..models import utcnow
from .models import HEALTH_ORDER, HealthState, SystemHealthStatus

logger = logging.getLogger("dashboard-resilience.recovery")


class SystemHealthMonitor:
    """Writer-side owner of SystemHealthStatus.

    Every mutation runs under one lock and readers get deep copies, so no
    caller can observe a half-applied update.
    """

    def __init__(self) -> None:
        self._status = SystemHealthStatus()
        self._lock = RLock()

    def degrade_to(self, level: HealthState, reason: str) -> bool:
        """Move the status down to ``level``.

        Returns:
            True if the status changed, False if already at that level or worse
        """
        with self._lock:
            current_idx = HEALTH_ORDER.index(self._status.status)
            target_idx = HEALTH_ORDER.index(level)
            if target_idx <= current_idx:
                return False
            previous = self._status.status
            self._status.status = level
            if level == HealthState.CRITICAL:
                self._status.critical_systems_operational = False
        logger.warning(f"System health {previous.value} -> {level.value}: {reason}")
        return True

    def record_failure(self, component_id: str, critical: bool = False) -> None:
        with self._lock:
            self._status.failed_components.add(component_id)
            self._status.recovery_mechanisms_active = True
            self.degrade_to(
                HealthState.CRITICAL if critical else HealthState.DEGRADED,
                f"component {component_id} failed",
            )

    def record_system_failure(self, reason: str) -> None:
        """Mark a system-wide failure; blocks recovery until resolved."""
        with self._lock:
            self._status.system_wide_failure = True
            self._status.recovery_mechanisms_active = True
            self.degrade_to(HealthState.CRITICAL, f"system-wide failure: {reason}")

    def resolve_system_failure(self) -> None:
        with self._lock:
            self._status.system_wide_failure = False
            self._recover_if_clear("system-wide failure resolved")

    def record_restored(self, component_id: str) -> None:
        """Drop a restored component; recover fully once nothing is outstanding."""
        with self._lock:
            self._status.failed_components.discard(component_id)
            self._recover_if_clear(f"last: {component_id}")

    def set_fallback_logging(self, active: bool) -> None:
        with self._lock:
            self._status.fallback_logging_active = active

    def snapshot(self) -> SystemHealthStatus:
        """Copy of the status with ``last_health_check`` refreshed."""
        with self._lock:
            self._status.last_health_check = utcnow()
            return self._status.model_copy(deep=True)

    def _recover_if_clear(self, reason: str) -> None:
        if self._status.failed_components or self._status.system_wide_failure:
            return
        if self._status.status != HealthState.HEALTHY:
            logger.info(f"All failures cleared, system healthy again ({reason})")
        self._status.status = HealthState.HEALTHY
        self._status.critical_systems_operational = True


__all__ = ["SystemHealthMonitor"]
