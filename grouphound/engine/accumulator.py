# Run-scoped edge collection.
#
# Every step of a resolution run, including FSP discovery and parallel
# workers, appends to the same accumulator. Only the top-level resolve()
# hands the collected edges back to the caller.

import threading
from typing import Iterable, List

from ..models import MembershipEdge


class EdgeAccumulator:
    """Append-only, lock-guarded list of MembershipEdges."""

    def __init__(self):
        self._edges: List[MembershipEdge] = []
        self._lock = threading.Lock()

    def add(self, edge: MembershipEdge) -> None:
        with self._lock:
            self._edges.append(edge)

    def extend(self, edges: Iterable[MembershipEdge]) -> None:
        edges = list(edges)
        with self._lock:
            self._edges.extend(edges)

    def edges(self) -> List[MembershipEdge]:
        """Snapshot copy of everything collected so far."""
        with self._lock:
            return list(self._edges)

    def __len__(self) -> int:
        with self._lock:
            return len(self._edges)
