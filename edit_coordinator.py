"""
Live link-weight edits.

An edit is a cancel-then-restart: the new weight goes into the topology,
every routing table is reset to the unreachable baseline and convergence
starts again from INITIALIZING. Edits are accepted only while the engine is
idle, finished, or paused.
"""

import logging
from typing import Callable, Optional

from distance_vector_engine import ConvergenceEngine
from errors import EditRejected
from topology import Link, LinkRef

LOGGER = logging.getLogger(__name__)


class EditCoordinator:
    """
    Gatekeeper between external weight edits and the convergence engine.

    ``halt`` stops whatever thread is driving the engine (cancel and wait);
    without one the engine is assumed to be driven from the caller's thread.
    """

    def __init__(self, engine: ConvergenceEngine, halt: Optional[Callable[[], None]] = None) -> None:
        self._engine = engine
        self._halt = halt

    def apply_weight_change(self, link: LinkRef, new_weight: int) -> Link:
        """
        Set ``link`` to ``new_weight``, reset all tables and restart.

        Raises EditRejected while the engine computes unpaused, and
        InvalidTopology for an unknown link or an out-of-range weight.
        """
        engine = self._engine
        if engine.state.active and not engine.paused:
            LOGGER.warning("edit of %s rejected: engine is %s", link, engine.state.value)
            raise EditRejected(
                f"Cannot edit link weights while the engine is {engine.state.value}; pause it first."
            )

        topology = engine.topology
        current = topology.link(link)
        weight = topology.check_weight(current, new_weight)
        if engine.state.active:
            self._stop_run()
        updated = topology.set_weight(current, weight)
        LOGGER.debug("link %s-%s weight %d -> %d", updated.a, updated.b, current.weight, updated.weight)

        engine.start()
        return updated

    def adjust_weight(self, link: LinkRef, delta: int) -> Link:
        """
        Step a link weight by ``delta``, never going below 1.
        """
        current = self._engine.topology.link(link)
        return self.apply_weight_change(current, max(1, current.weight + delta))

    def _stop_run(self) -> None:
        if self._halt is not None:
            self._halt()
        else:
            self._engine.abort("link weight edited")
