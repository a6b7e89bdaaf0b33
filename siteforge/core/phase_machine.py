"""Deployment phase state machine.

Enforces:
- Valid phase transitions only (VALID_TRANSITIONS table)
- A failed in-flight phase reverts to the stable phase it started from
- Every transition is logged
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from siteforge.models.deployment import (
    IN_FLIGHT_PHASES,
    VALID_TRANSITIONS,
    DeployPhase,
)

logger = logging.getLogger(__name__)


class InvalidTransitionError(RuntimeError):
    """Raised when a requested phase transition is not valid."""


# Stable phase each in-flight phase starts from (and reverts to on failure).
_START_PHASE: dict[DeployPhase, DeployPhase] = {
    DeployPhase.PREPARING: DeployPhase.IDLE,
    DeployPhase.UPLOADING: DeployPhase.PREPARED,
    DeployPhase.CERTIFYING: DeployPhase.UPLOADED,
    DeployPhase.DEPLOYING: DeployPhase.CERTIFIED,
}


class PhaseMachine:
    """Tracks the current ``DeployPhase`` of one deployment.

    Parameters
    ----------
    initial:
        Starting phase, ``IDLE`` unless resuming.
    """

    def __init__(self, initial: DeployPhase = DeployPhase.IDLE) -> None:
        self._phase = initial

    @property
    def phase(self) -> DeployPhase:
        return self._phase

    @property
    def in_flight(self) -> bool:
        return self._phase in IN_FLIGHT_PHASES

    # ------------------------------------------------------------------
    # Transition logic
    # ------------------------------------------------------------------

    def can_transition(self, target: DeployPhase) -> bool:
        return target in VALID_TRANSITIONS.get(self._phase, set())

    def transition(self, target: DeployPhase) -> DeployPhase:
        """Move to *target*, returning the previous phase."""
        if not self.can_transition(target):
            allowed = sorted(p.value for p in VALID_TRANSITIONS.get(self._phase, set()))
            raise InvalidTransitionError(
                f"Cannot transition from {self._phase.value} to {target.value}. "
                f"Allowed: {allowed}"
            )
        previous = self._phase
        self._phase = target
        logger.debug("Phase %s -> %s", previous.value, target.value)
        return previous

    # ------------------------------------------------------------------
    # Convenience methods
    # ------------------------------------------------------------------

    def begin(self, in_flight: DeployPhase) -> None:
        """Enter an in-flight phase from its stable start phase."""
        if in_flight not in IN_FLIGHT_PHASES:
            raise ValueError(f"{in_flight.value} is not an in-flight phase")
        self.transition(in_flight)

    def complete(self, target: DeployPhase) -> None:
        """Leave the current in-flight phase for a forward phase."""
        self.transition(target)

    def revert(self) -> DeployPhase:
        """Roll the current in-flight phase back to where it started."""
        start = _START_PHASE.get(self._phase)
        if start is None:
            raise InvalidTransitionError(f"{self._phase.value} is not an in-flight phase")
        self.transition(start)
        return start

    def require(self, allowed: Iterable[DeployPhase], operation: str) -> None:
        """Fail unless the current phase is one of *allowed*."""
        phases = set(allowed)
        if self._phase not in phases:
            raise InvalidTransitionError(
                f"Cannot {operation} in phase {self._phase.value}. "
                f"Allowed in: {sorted(p.value for p in phases)}"
            )

    def reset(self) -> None:
        """Return to IDLE unconditionally."""
        logger.debug("Phase %s -> %s (reset)", self._phase.value, DeployPhase.IDLE.value)
        self._phase = DeployPhase.IDLE

    def get_available_transitions(self) -> set[DeployPhase]:
        return set(VALID_TRANSITIONS.get(self._phase, set()))
