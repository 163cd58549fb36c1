"""
Error taxonomy for the DV simulator.

InvalidTopology: bad session input, surfaced at construction or edit time.
EditRejected: a weight edit arrived while the engine was busy and unpaused.
InternalInconsistency: the engine referenced a node or link the topology
does not hold; fatal for the run.
"""


class InvalidTopology(ValueError):
    """Node count, weight or link reference rejected by the topology."""


class EditRejected(RuntimeError):
    """Edit attempted during active, unpaused computation."""


class InternalInconsistency(RuntimeError):
    """Engine state disagrees with the topology it was built from."""
