"""
Session-level tests: matrix setup, background worker, control surface.
"""

import threading
import time

import pytest

from distance_vector_engine import EngineState
from errors import EditRejected, InvalidTopology
from events import Aborted, Converged, EventLog, StatusMessage
from session import Session, create_session
from topology import Link

LINE_MATRIX = [[0, 2, None], [2, 0, 3], [None, 3, 0]]


class Gate:
    """Pacing hook that holds the worker at its first suspension point."""

    def __init__(self) -> None:
        self.reached = threading.Event()
        self.released = threading.Event()

    def __call__(self, kind: str) -> None:
        self.reached.set()
        self.released.wait(timeout=5)


def _plain(snapshot):
    return {node: dict(table) for node, table in snapshot.items()}


def test_create_session_from_matrix():
    session = create_session(3, LINE_MATRIX)

    assert list(session.topology.nodes()) == ["A", "B", "C"]
    assert session.topology.links() == (Link("A", "B", 2), Link("B", "C", 3))
    assert session.state == EngineState.IDLE


def test_create_session_rejects_bad_input():
    with pytest.raises(InvalidTopology):
        create_session(9, [[0] * 9 for _ in range(9)])
    with pytest.raises(InvalidTopology):
        create_session(2, [[0, -1], [-1, 0]])


def test_foreground_run_and_verify():
    session = create_session(3, LINE_MATRIX)

    assert session.run() == EngineState.CONVERGED
    assert session.verify() == []
    assert session.tables()["A"]["C"].distance == 5


def test_manual_stepping():
    session = Session.from_links(["A", "B"], [("A", "B", 7)])
    session.start(background=False)

    steps = 0
    while session.step():
        steps += 1

    assert steps > 0
    assert session.state == EngineState.CONVERGED
    assert session.tables()["B"]["A"].distance == 7


def test_background_run_converges():
    session = create_session(3, LINE_MATRIX)
    log = EventLog()
    session.subscribe(log)

    session.start()

    assert session.wait(timeout=5) == EngineState.CONVERGED
    assert log.of_type(Converged) == [Converged(2)]
    assert session.verify() == []


def test_verify_reports_unconverged_tables():
    session = create_session(3, LINE_MATRIX)
    problems = session.verify()
    assert "A->B: distance 999999, expected 2" in problems


def test_pause_blocks_worker_and_edit_is_accepted():
    gate = Gate()
    session = create_session(3, LINE_MATRIX, pacing=gate)
    log = EventLog()
    session.subscribe(log)
    session.start()
    assert gate.reached.wait(timeout=5)

    session.pause()
    gate.released.set()
    assert session.paused

    frozen = _plain(session.tables())
    time.sleep(0.05)
    assert _plain(session.tables()) == frozen
    assert session.state.active

    session.apply_weight_change(("A", "B"), 10)

    assert session.wait(timeout=5) == EngineState.CONVERGED
    assert log.of_type(Aborted) == [Aborted("cancelled")]
    assert session.tables()["A"]["C"].distance == 13
    assert session.verify() == []


def test_edit_rejected_while_worker_runs():
    gate = Gate()
    session = create_session(3, LINE_MATRIX, pacing=gate)
    session.start()
    assert gate.reached.wait(timeout=5)

    with pytest.raises(EditRejected):
        session.apply_weight_change(("A", "B"), 10)
    with pytest.raises(EditRejected):
        session.restart()

    gate.released.set()
    assert session.wait(timeout=5) == EngineState.CONVERGED
    assert session.topology.weight("A", "B") == 2


def test_cancel_paused_worker():
    gate = Gate()
    session = create_session(3, LINE_MATRIX, pacing=gate)
    log = EventLog()
    session.subscribe(log)
    session.start()
    assert gate.reached.wait(timeout=5)
    session.pause()
    gate.released.set()

    session.cancel()

    assert session.wait(timeout=5) == EngineState.ABORTED
    assert not log.of_type(Converged)
    assert "Simulation paused" in [e.text for e in log.of_type(StatusMessage)]


def test_restart_while_paused():
    gate = Gate()
    session = create_session(3, LINE_MATRIX, pacing=gate)
    session.start()
    assert gate.reached.wait(timeout=5)
    session.pause()
    gate.released.set()

    session.restart()

    assert session.wait(timeout=5) == EngineState.CONVERGED
    assert session.verify() == []


def test_adjust_weight_in_foreground_session():
    session = create_session(3, LINE_MATRIX)
    session.run()

    link = session.adjust_weight(("C", "B"), -2)

    assert link == Link("B", "C", 1)
    assert session.wait() == EngineState.CONVERGED
    assert session.tables()["A"]["C"].distance == 3


def test_acknowledge_updates_through_session():
    session = Session.from_links(["A", "B"], [("A", "B", 1)])
    session.start(background=False)
    session.step()
    session.step()
    assert session.tables()["A"]["B"].updated

    session.acknowledge_updates()

    assert not session.tables()["A"]["B"].updated


def test_heaviest_allowed_weights_still_verify():
    """Longest simple path at the weight cap stays below the sentinel."""
    session = Session.from_links(["A", "B", "C"], [("A", "B", 499999), ("B", "C", 499999)])

    assert session.run() == EngineState.CONVERGED
    assert session.tables()["A"]["C"].distance == 999998
    assert session.verify() == []
