"""
Simulation session: the surface the UI layer talks to.

A session bundles one topology with its routing tables, the convergence
engine, the step driver and the edit coordinator. The engine runs either on
a single background worker thread (``start()``) or in the caller's thread
(``run()`` / ``step()``). Nothing is persisted; a session lives for one run.
"""

import logging
import threading
from typing import List, Mapping, Optional, Sequence

import numpy as np

from dijkstra_engine import all_pairs_distances
from distance_vector_engine import ConvergenceEngine, EngineState
from edit_coordinator import EditCoordinator
from errors import EditRejected
from events import EventBus, Listener
from graph import NodeId
from routing import NO_HOP, UNREACHABLE, RoutingTableStore, Table
from step_driver import PacingHook, StepDriver
from topology import Link, LinkRef, LinkSpec, Topology

LOGGER = logging.getLogger(__name__)


class Session:
    """
    One simulated network and its convergence run.

    Control methods are safe to call from a UI thread while the worker runs;
    they must not be called from inside an event listener, which executes
    on the worker thread.
    """

    def __init__(
        self,
        topology: Topology,
        delays: Optional[Mapping[str, float]] = None,
        pacing: Optional[PacingHook] = None,
    ) -> None:
        self.topology = topology
        self.bus = EventBus()
        self.driver = StepDriver(delays, pacing)
        self.store = RoutingTableStore(topology)
        self.engine = ConvergenceEngine(topology, self.store, self.bus, self.driver)
        self.coordinator = EditCoordinator(self.engine, halt=self._halt)
        self._worker: Optional[threading.Thread] = None
        self._background = False
        self._error: Optional[BaseException] = None

    @classmethod
    def from_links(
        cls,
        node_ids: Sequence[NodeId],
        link_specs: Sequence[LinkSpec],
        delays: Optional[Mapping[str, float]] = None,
        pacing: Optional[PacingHook] = None,
    ) -> "Session":
        return cls(Topology.build(node_ids, link_specs), delays=delays, pacing=pacing)

    # --- Observation ---------------------------------------------------------

    @property
    def state(self) -> EngineState:
        return self.engine.state

    @property
    def paused(self) -> bool:
        return self.engine.paused

    def subscribe(self, listener: Listener):
        return self.bus.subscribe(listener)

    def tables(self) -> Mapping[NodeId, Table]:
        return self.engine.snapshot()

    def acknowledge_updates(self) -> None:
        self.engine.acknowledge_updates()

    # --- Control surface -----------------------------------------------------

    def start(self, background: bool = True) -> None:
        """
        Reset the tables and begin converging.

        With ``background`` the engine runs on a worker thread; otherwise
        the caller drives it with :meth:`step` or :meth:`wait`.
        """
        if self.engine.state.active and not self.engine.paused:
            raise EditRejected("Simulation is already running; pause it before restarting.")
        if self.engine.state.active:
            self._halt()
        self._background = background
        self.engine.start()
        if background:
            self._launch()
        else:
            self._worker = None

    def run(self) -> EngineState:
        """Converge in the caller's thread and return the final state."""
        self.start(background=False)
        return self.engine.run()

    def step(self) -> bool:
        """Advance a foreground run by one suspension point."""
        return self.engine.step(block=False)

    def pause(self) -> None:
        self.driver.pause()

    def resume(self) -> None:
        self.driver.resume()

    def cancel(self) -> None:
        """Abort the run at its next suspension point."""
        self.engine.cancel()

    def restart(self) -> None:
        self.start(background=self._background)

    def apply_weight_change(self, link: LinkRef, new_weight: int) -> Link:
        updated = self.coordinator.apply_weight_change(link, new_weight)
        if self._background:
            self._launch()
        return updated

    def adjust_weight(self, link: LinkRef, delta: int) -> Link:
        updated = self.coordinator.adjust_weight(link, delta)
        if self._background:
            self._launch()
        return updated

    def wait(self, timeout: Optional[float] = None) -> EngineState:
        """
        Block until the worker finishes (or ``timeout`` elapses) and return
        the engine state. A foreground run is driven to completion instead.
        Re-raises a fatal error from the worker.
        """
        worker = self._worker
        if worker is not None:
            worker.join(timeout)
        elif not self._background:
            self.engine.run()
        if self._error is not None:
            error, self._error = self._error, None
            raise error
        return self.engine.state

    # --- Verification --------------------------------------------------------

    def reference_distances(self) -> np.ndarray:
        """All-pairs shortest paths computed independently with Dijkstra."""
        return all_pairs_distances(self.topology)

    def verify(self) -> List[str]:
        """
        Compare the current tables with the reference distances.

        Returns a list of human-readable mismatches; empty means every
        distance is optimal and every next hop lies on a shortest path.
        """
        expected = self.reference_distances()
        nodes = list(self.topology.nodes())
        index = {node: i for i, node in enumerate(nodes)}
        tables = self.tables()
        problems: List[str] = []
        for node in nodes:
            for dest, entry in tables[node].items():
                want = int(expected[index[node], index[dest]])
                if entry.distance != want:
                    problems.append(f"{node}->{dest}: distance {entry.distance}, expected {want}")
                    continue
                if want >= UNREACHABLE:
                    if entry.next_hop != NO_HOP:
                        problems.append(f"{node}->{dest}: unreachable but next hop {entry.next_hop}")
                    continue
                hop = entry.next_hop
                if hop == NO_HOP or hop not in index:
                    problems.append(f"{node}->{dest}: missing next hop")
                    continue
                try:
                    via = self.topology.weight(node, hop) + int(expected[index[hop], index[dest]])
                except ValueError:
                    problems.append(f"{node}->{dest}: next hop {hop} is not a neighbour")
                    continue
                if via != want:
                    problems.append(f"{node}->{dest}: next hop {hop} not on a shortest path ({via} != {want})")
        return problems

    # --- Worker --------------------------------------------------------------

    def _launch(self) -> None:
        self._error = None
        self._worker = threading.Thread(target=self._work, name="dv-engine", daemon=True)
        self._worker.start()

    def _work(self) -> None:
        try:
            self.engine.run()
        except Exception as exc:
            LOGGER.exception("convergence run failed")
            self._error = exc

    def _halt(self) -> None:
        worker = self._worker
        if worker is not None and worker.is_alive():
            self.engine.cancel()
            worker.join()
        else:
            self.engine.abort("halted")
        self._worker = None


def create_session(
    node_count: int,
    distance_matrix: Sequence[Sequence[Optional[float]]],
    delays: Optional[Mapping[str, float]] = None,
    pacing: Optional[PacingHook] = None,
) -> Session:
    """
    Build a session from the setup form's node count and distance matrix.
    """
    return Session(Topology.from_matrix(node_count, distance_matrix), delays=delays, pacing=pacing)
