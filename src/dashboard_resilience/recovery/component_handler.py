"""
In-memory component lifecycle tracking.

Used when the host has no lifecycle owner of its own; a plugin manager can
replace it by implementing ComponentFailureHandler.
"""

from __future__ import annotations

import logging
from threading import RLock
from typing import Any

from ..exceptions import ComponentError
from ..models import error_text
from .interfaces import ComponentFailureHandler
from .models import ComponentFailureContext

logger = logging.getLogger("dashboard-resilience.recovery")


class InMemoryComponentFailureHandler(ComponentFailureHandler):
    """Tracks component health flags and registered fallbacks.

    Components are healthy until marked otherwise. ``restore_component``
    fails for components whose id was registered as unrestorable, which
    lets hosts and tests model components that cannot come back.
    """

    def __init__(self) -> None:
        self._health: dict[str, bool] = {}
        self._fallbacks: dict[str, Any] = {}
        self._unrestorable: set[str] = set()
        self._lock = RLock()

    async def handle_component_failure(
        self,
        component_id: str,
        error: BaseException,
        context: ComponentFailureContext,
    ) -> None:
        with self._lock:
            self._health[component_id] = False
        logger.info(f"Component {component_id} marked as unhealthy: {error_text(error)}")

    def register_fallback_component(self, component_id: str, fallback_component: Any) -> None:
        with self._lock:
            self._fallbacks[component_id] = fallback_component
        logger.debug(f"Fallback component registered for {component_id}")

    async def get_fallback_component(self, component_id: str) -> Any:
        with self._lock:
            return self._fallbacks.get(component_id)

    async def is_component_healthy(self, component_id: str) -> bool:
        with self._lock:
            return self._health.get(component_id, True)

    def mark_component_unhealthy(self, component_id: str) -> None:
        with self._lock:
            self._health[component_id] = False
        logger.info(f"Component {component_id} marked as unhealthy")

    def mark_unrestorable(self, component_id: str, unrestorable: bool = True) -> None:
        with self._lock:
            if unrestorable:
                self._unrestorable.add(component_id)
            else:
                self._unrestorable.discard(component_id)

    async def restore_component(self, component_id: str) -> None:
        with self._lock:
            if component_id in self._unrestorable:
                raise ComponentError(
                    f"Component {component_id} cannot be restored",
                    component_id=component_id,
                    recoverable=False,
                )
            self._health[component_id] = True
        logger.info(f"Component {component_id} restored to healthy state")


__all__ = ["InMemoryComponentFailureHandler"]
