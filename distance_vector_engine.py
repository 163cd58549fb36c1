"""
Step-wise Bellman–Ford distance-vector convergence engine.

The engine seeds every routing table from the direct links, then runs up to
``node_count - 1`` relaxation passes over all (node, destination) pairs in
topology declaration order, stopping early after a pass with no change. The
algorithm is written as a generator: each ``yield`` is a suspension point
where the StepDriver may pause, pace or cancel the run, and where observers
have just received the events describing the work done.
"""

import logging
import threading
from dataclasses import replace
from enum import Enum
from typing import Generator, Iterator, Mapping, Optional

from errors import EditRejected, InternalInconsistency
from events import (
    Aborted,
    Converged,
    EntryProcessing,
    EntryUpdated,
    Event,
    EventBus,
    LinkActivated,
    LinkDeactivated,
    NodeActivated,
    NodeDeactivated,
    PassEnded,
    PassStarted,
    StatusMessage,
)
from graph import NodeId
from routing import RoutingEntry, RoutingTableStore, Table, add_distance
from step_driver import StepDriver
from topology import Topology

LOGGER = logging.getLogger(__name__)


class EngineState(Enum):
    """
    Lifecycle of one convergence run.

    Paused is not a state of its own: it is the driver's flag observed while
    INITIALIZING or RELAXING.
    """

    IDLE = "idle"
    INITIALIZING = "initializing"
    RELAXING = "relaxing"
    CONVERGED = "converged"
    ABORTED = "aborted"

    @property
    def active(self) -> bool:
        return self in (EngineState.INITIALIZING, EngineState.RELAXING)


class ConvergenceEngine:
    """
    Sole writer of a RoutingTableStore.

    Drive it either one suspension point at a time with :meth:`step`, or to
    completion with :meth:`run` (which blocks while the driver is paused).
    """

    def __init__(
        self,
        topology: Topology,
        store: Optional[RoutingTableStore] = None,
        bus: Optional[EventBus] = None,
        driver: Optional[StepDriver] = None,
    ) -> None:
        self._topology = topology
        self._store = store if store is not None else RoutingTableStore(topology)
        self._bus = bus if bus is not None else EventBus()
        self._driver = driver if driver is not None else StepDriver()
        self._state = EngineState.IDLE
        self._work: Optional[Iterator[str]] = None
        self._passes = 0
        self._pause_announced = False
        # Held while the generator advances so cross-thread readers see whole steps.
        self._lock = threading.RLock()

    # --- Introspection -------------------------------------------------------

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def paused(self) -> bool:
        return self._state.active and self._driver.paused

    @property
    def passes(self) -> int:
        """Relaxation passes started in the current or last run."""
        return self._passes

    @property
    def max_passes(self) -> int:
        return len(self._topology.nodes()) - 1

    @property
    def topology(self) -> Topology:
        return self._topology

    @property
    def driver(self) -> StepDriver:
        return self._driver

    @property
    def bus(self) -> EventBus:
        return self._bus

    def snapshot(self) -> Mapping[NodeId, Table]:
        with self._lock:
            return self._store.snapshot()

    # --- Control -------------------------------------------------------------

    def start(self) -> None:
        """
        Reset every table and begin a fresh run at INITIALIZING.

        Rejected while a run is active and not paused. A paused run is
        aborted first; its partial tables are discarded by the reset.
        """
        self._check_can_restart("restart")
        with self._lock:
            if self._work is not None:
                self._abort("restarted")
            self._driver.reset()
            self._store.reset(self._topology)
            self._passes = 0
            self._begin(self._converge(), EngineState.INITIALIZING)
        LOGGER.debug("run started over %d nodes", len(self._topology))

    def revalidate(self) -> None:
        """
        Run relaxation passes over the current tables without resetting them.

        On a converged table the first pass changes nothing and the run
        converges immediately.
        """
        self._check_can_restart("revalidate")
        with self._lock:
            if self._work is not None:
                self._abort("revalidating")
            self._driver.reset()
            self._passes = 0
            self._begin(self._relax_passes(), EngineState.RELAXING)

    def cancel(self) -> None:
        """
        Request an abort at the next suspension point.

        Without a run in progress an idle engine moves straight to ABORTED;
        a converged one stays converged.
        """
        self._driver.cancel()
        with self._lock:
            if self._work is None and self._state == EngineState.IDLE:
                self._state = EngineState.ABORTED
                self._emit(Aborted("cancelled"))

    def abort(self, reason: str = "cancelled") -> None:
        """
        Abort the in-flight run immediately. Only call from the thread driving
        the engine, or once that thread has stopped.
        """
        with self._lock:
            if self._work is not None:
                self._abort(reason)

    def acknowledge_updates(self) -> None:
        """Observer consumption window: clear every ``updated`` flag."""
        with self._lock:
            self._store.clear_updated()

    # --- Driving -------------------------------------------------------------

    def step(self, block: bool = False) -> bool:
        """
        Advance to the next suspension point.

        Returns False once the run has finished (converged or aborted).
        While paused, a non-blocking call returns True without doing work;
        a blocking call waits for resume or cancel.
        """
        if self._work is None:
            return False
        if self._driver.paused:
            self._announce_pause()
        if not self._driver.proceed(block):
            if self._driver.cancelled:
                self.abort("cancelled")
                return False
            return True
        self._pause_announced = False

        with self._lock:
            try:
                kind = next(self._work)
            except StopIteration:
                self._work = None
                return False
            except InternalInconsistency as exc:
                self._abort(str(exc))
                raise
        self._driver.pace(kind)
        return True

    def run(self) -> EngineState:
        """Drive the current run until it converges or is aborted."""
        while self.step(block=True):
            pass
        return self._state

    def run_to_convergence(self) -> EngineState:
        """Start a fresh run and drive it to the end."""
        self.start()
        return self.run()

    # --- Algorithm -----------------------------------------------------------

    def _converge(self) -> Generator[str, None, None]:
        yield from self._initialize()
        self._state = EngineState.RELAXING
        yield from self._relax_passes()

    def _initialize(self) -> Generator[str, None, None]:
        """
        Seed each pair of directly linked nodes with the link weight.
        """
        self._status("Initializing direct connections between nodes...")
        for link in self._topology.links():
            a, b = link.a, link.b
            self._require(a)
            self._require(b)
            self._status(f"Setting up direct connection: Node {a} ↔ Node {b}")
            self._emit(NodeActivated(a))
            self._emit(NodeActivated(b))
            self._emit(LinkActivated(a, b))
            yield "link"

            self._write(a, b, RoutingEntry(link.weight, b, updated=True, calculated=True))
            self._write(b, a, RoutingEntry(link.weight, a, updated=True, calculated=True))
            self._emit(NodeDeactivated(a))
            self._emit(NodeDeactivated(b))
            self._emit(LinkDeactivated(a, b))
            yield "entry"

    def _relax_passes(self) -> Generator[str, None, None]:
        nodes = self._topology.nodes()
        max_passes = self.max_passes

        for pass_number in range(1, max_passes + 1):
            self._passes = pass_number
            self._emit(PassStarted(pass_number, max_passes))
            self._status(f"Starting pass {pass_number} of {max_passes}")
            yield "pass"

            changed = False
            for node in nodes:
                for dest in nodes:
                    if node == dest:
                        continue
                    updated = yield from self._relax_entry(node, dest)
                    if updated:
                        changed = True

            self._emit(PassEnded(pass_number, changed))
            LOGGER.debug("pass %d/%d finished, changed=%s", pass_number, max_passes, changed)
            yield "pass"
            if not changed:
                break

        # Exhausting max_passes still counts as converged for static topologies.
        self._state = EngineState.CONVERGED
        self._status("Simulation complete")
        self._emit(Converged(self._passes))
        LOGGER.info("converged after %d pass(es)", self._passes)

    def _relax_entry(self, node: NodeId, dest: NodeId) -> Generator[str, None, bool]:
        """
        Recompute node's entry for dest from its neighbours' current tables.

        The first strictly improving neighbour in link order wins; later
        candidates of equal cost do not replace it.
        """
        self._require(node)
        self._require(dest)
        current = self._store.get(node, dest)

        self._status(f"Calculating shortest path: Node {node} → Node {dest}")
        self._emit(NodeActivated(node))
        self._store.set(node, dest, replace(current, processing=True))
        self._emit(EntryProcessing(node, dest))
        yield "entry"

        old_distance = current.distance
        best, next_hop = old_distance, current.next_hop
        for link in self._topology.incident(node):
            neighbor = link.other(node)
            self._require(neighbor)
            self._emit(NodeActivated(neighbor))
            self._emit(LinkActivated(node, neighbor))
            yield "probe"

            candidate = add_distance(link.weight, self._store.distance(neighbor, dest))
            if candidate < best:
                best, next_hop = candidate, neighbor

            self._emit(LinkDeactivated(node, neighbor))
            self._emit(NodeDeactivated(neighbor))

        updated = best != old_distance
        self._write(node, dest, RoutingEntry(best, next_hop, updated=updated, calculated=True))
        self._emit(NodeDeactivated(node))
        yield "entry"
        return updated

    # --- Internal helpers ----------------------------------------------------

    def _begin(self, work: Iterator[str], state: EngineState) -> None:
        self._work = work
        self._state = state
        self._pause_announced = False

    def _abort(self, reason: str) -> None:
        work, self._work = self._work, None
        if work is not None:
            work.close()
        self._state = EngineState.ABORTED
        self._emit(Aborted(reason))
        LOGGER.info("run aborted: %s", reason)

    def _check_can_restart(self, action: str) -> None:
        if self._state.active and not self._driver.paused:
            raise EditRejected(
                f"Cannot {action} while the engine is {self._state.value}; pause it first."
            )

    def _announce_pause(self) -> None:
        if not self._pause_announced:
            self._pause_announced = True
            self._status("Simulation paused")

    def _require(self, node: NodeId) -> None:
        if node not in self._topology:
            raise InternalInconsistency(f"Node {node!r} is not part of the topology.")

    def _write(self, node: NodeId, dest: NodeId, entry: RoutingEntry) -> None:
        self._store.set(node, dest, entry)
        self._emit(EntryUpdated(node, dest, entry))

    def _status(self, text: str) -> None:
        self._emit(StatusMessage(text))

    def _emit(self, event: Event) -> None:
        self._bus.emit(event)
