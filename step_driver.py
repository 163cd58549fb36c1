"""
Cooperative pacing, pause and cancellation for the convergence engine.

The engine consults a StepDriver at every suspension point: before a unit of
work it asks whether it may proceed (blocking while paused), after the unit
it lets the driver pace the run. Pacing is optional and never affects the
computed tables; a driver with no delays runs the algorithm flat out.
"""

import logging
import threading
from typing import Callable, Dict, Mapping, Optional

LOGGER = logging.getLogger(__name__)

# Suspension point kinds yielded by the engine.
STEP_KINDS = ("link", "probe", "entry", "pass")

# Per-kind delays (seconds) mirroring the interactive animation timings.
ANIMATION_DELAYS: Dict[str, float] = {
    "link": 0.5,
    "probe": 1.0,
    "entry": 0.5,
    "pass": 1.0,
}

PacingHook = Callable[[str], None]


class StepDriver:
    """
    Pause/resume/cancel token backed by a condition variable.

    pause() and cancel() may be called from any thread; the engine's thread
    observes them at its next suspension point. Cancel wakes a paused waiter
    and interrupts a pacing delay.
    """

    def __init__(
        self,
        delays: Optional[Mapping[str, float]] = None,
        pacing: Optional[PacingHook] = None,
    ) -> None:
        self._cond = threading.Condition()
        self._paused = False
        self._cancelled = False
        self._delays: Dict[str, float] = {}
        self._pacing = pacing
        if delays:
            self.set_delays(delays)

    # --- Control surface -----------------------------------------------------

    @property
    def paused(self) -> bool:
        return self._paused

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def pause(self) -> None:
        with self._cond:
            self._paused = True
        LOGGER.debug("driver paused")

    def resume(self) -> None:
        with self._cond:
            self._paused = False
            self._cond.notify_all()
        LOGGER.debug("driver resumed")

    def cancel(self) -> None:
        with self._cond:
            self._cancelled = True
            self._cond.notify_all()
        LOGGER.debug("driver cancelled")

    def reset(self) -> None:
        """Clear pause and cancel so the driver can pace a fresh run."""
        with self._cond:
            self._paused = False
            self._cancelled = False
            self._cond.notify_all()

    def set_delays(self, delays: Mapping[str, float]) -> None:
        for kind, delay in delays.items():
            if kind not in STEP_KINDS:
                raise ValueError(f"Unknown step kind '{kind}', expected one of {STEP_KINDS}.")
            if delay < 0:
                raise ValueError("delay must be non-negative")
        self._delays = dict(delays)

    # --- Engine side ---------------------------------------------------------

    def proceed(self, block: bool = True) -> bool:
        """
        May the engine run its next unit of work?

        With ``block`` the call waits while paused and returns once resumed
        (True) or cancelled (False). Without it, a paused driver answers
        False immediately and the caller does no work.
        """
        with self._cond:
            if block:
                self._cond.wait_for(lambda: not self._paused or self._cancelled)
            return not (self._paused or self._cancelled)

    def pace(self, kind: str) -> None:
        """
        Called after a unit of work. Runs the pacing hook, then waits out the
        configured delay unless cancelled first.
        """
        if self._pacing is not None:
            self._pacing(kind)
        delay = self._delays.get(kind, 0.0)
        if delay > 0:
            with self._cond:
                self._cond.wait_for(lambda: self._cancelled, timeout=delay)
