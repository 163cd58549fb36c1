"""
CLI to run a distance-vector convergence session from a YAML file.

Reads a session file (nodes + links, or node_count + matrix), converges the
routing tables, applies any configured link-weight edits with a
re-convergence after each, and prints the final tables. ``--verify`` checks
every table against an independent Dijkstra computation.
"""

from __future__ import annotations

import argparse
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import yaml

from distance_vector_engine import EngineState
from events import EntryUpdated, EventLog, PassEnded, StatusMessage
from routing import UNREACHABLE, Table
from session import Session, create_session
from step_driver import ANIMATION_DELAYS
from topology import LinkSpec

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class EditConfig:
    link: Tuple[str, str]
    weight: Optional[int] = None
    delta: Optional[int] = None


@dataclass(frozen=True)
class SessionConfig:
    nodes: Sequence[str] = ()
    links: Sequence[LinkSpec] = ()
    node_count: Optional[int] = None
    matrix: Optional[Sequence[Sequence[Optional[float]]]] = None
    delays: Mapping[str, float] = field(default_factory=dict)
    edits: Sequence[EditConfig] = ()


def _require(data: Mapping, key: str, where: str):
    if key not in data:
        raise ValueError(f"Session file is missing '{key}' in {where}.")
    return data[key]


def load_config(path: Path) -> SessionConfig:
    data = yaml.safe_load(path.read_text()) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Session file {path} must contain a mapping.")

    edits: List[EditConfig] = []
    for raw in data.get("edits") or []:
        a, b = _require(raw, "link", "edit")
        if "weight" not in raw and "delta" not in raw:
            raise ValueError(f"Edit of link {a}-{b} needs 'weight' or 'delta'.")
        edits.append(EditConfig(link=(str(a), str(b)), weight=raw.get("weight"), delta=raw.get("delta")))

    delays = dict(data.get("delays") or {})

    if "matrix" in data:
        matrix = data["matrix"]
        node_count = int(data.get("node_count", len(matrix)))
        return SessionConfig(node_count=node_count, matrix=matrix, delays=delays, edits=edits)

    nodes = [str(n) for n in _require(data, "nodes", "session")]
    links = [(str(a), str(b), w) for a, b, w in _require(data, "links", "session")]
    return SessionConfig(nodes=nodes, links=links, delays=delays, edits=edits)


def build_session(cfg: SessionConfig, paced: bool = False) -> Session:
    delays: Dict[str, float] = {}
    if paced:
        delays = dict(ANIMATION_DELAYS)
        delays.update(cfg.delays)
    if cfg.matrix is not None:
        return create_session(cfg.node_count or len(cfg.matrix), cfg.matrix, delays=delays)
    return Session.from_links(cfg.nodes, cfg.links, delays=delays)


def format_tables(tables: Mapping[str, Table]) -> str:
    lines: List[str] = []
    for node, table in tables.items():
        lines.append(f"Node {node}")
        lines.append("  dest  dist  next")
        for dest, entry in table.items():
            dist = "∞" if entry.distance >= UNREACHABLE else str(entry.distance)
            marker = " *" if entry.updated else ""
            lines.append(f"  {dest:<4}  {dist:>4}  {entry.next_hop}{marker}")
    return "\n".join(lines)


def converge(session: Session, log: EventLog, label: str) -> EngineState:
    start = time.time()
    state = session.wait()
    passes = log.of_type(PassEnded)
    writes = sum(1 for e in log.of_type(EntryUpdated) if e.entry.updated)
    print(
        f"[run] {label}: state={state.value} passes={len(passes)} "
        f"updates={writes} duration={time.time() - start:.2f}s"
    )
    return state


def run_session(cfg: SessionConfig, paced: bool = False, verify: bool = False, show_status: bool = False) -> int:
    session = build_session(cfg, paced=paced)
    log = EventLog()
    session.subscribe(log)
    if show_status:
        session.subscribe(lambda e: print(f"  {e.text}") if isinstance(e, StatusMessage) else None)

    print(f"[run] {len(session.topology)} nodes, {len(session.topology.links())} links")
    log.clear()
    session.start(background=paced)
    converge(session, log, "initial")

    for edit in cfg.edits:
        log.clear()
        LOGGER.info("applying edit %s", edit)
        if edit.weight is not None:
            link = session.apply_weight_change(edit.link, edit.weight)
        else:
            link = session.adjust_weight(edit.link, edit.delta or 0)
        converge(session, log, f"edit {link.a}-{link.b}={link.weight}")

    print(format_tables(session.tables()))

    if verify:
        problems = session.verify()
        for problem in problems:
            print(f"[verify] {problem}")
        print(f"[verify] {'ok' if not problems else f'{len(problems)} mismatches'}")
        return 1 if problems else 0
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Distance-vector routing convergence simulator")
    parser.add_argument("config", type=Path, help="YAML session file")
    parser.add_argument("--paced", action="store_true", help="run on a worker with animation delays")
    parser.add_argument("--verify", action="store_true", help="check tables against Dijkstra")
    parser.add_argument("--status", action="store_true", help="print status messages as they happen")
    parser.add_argument("--log-level", default="WARNING")
    args = parser.parse_args(argv)

    logging.basicConfig(level=args.log_level.upper(), format="%(levelname)s %(name)s: %(message)s")
    cfg = load_config(args.config)
    return run_session(cfg, paced=args.paced, verify=args.verify, show_status=args.status)


if __name__ == "__main__":
    raise SystemExit(main())
