import csv
import json
from typing import Any, Dict, List

from ..models import MembershipEdge, unique_edges
from ..utils.logging import good

CSV_FIELDS = [
    "source_identity",
    "source_domain",
    "source_kind",
    "target_group",
    "target_domain",
    "target_kind",
    "target_sid",
    "nesting_level",
    "is_foreign_security_principal",
]


def _edges_to_dicts(edges: List[MembershipEdge], include_anchors: bool, unique: bool) -> List[Dict[str, Any]]:
    """Convert edges to dicts, dropping anchors and duplicates unless asked to keep them."""
    selected = [edge for edge in edges if include_anchors or not edge.is_anchor]
    if unique:
        selected = unique_edges(selected)
    return [edge.to_dict() for edge in selected]


def write_json(
    path: str,
    edges: List[MembershipEdge],
    include_anchors: bool = False,
    unique: bool = True,
    silent: bool = False,
):
    with open(path, "w", encoding="utf-8") as f:
        json.dump(_edges_to_dicts(edges, include_anchors, unique), f, indent=2)
    if not silent:
        good(f"Wrote JSON results to {path}")


def write_csv(path: str, edges: List[MembershipEdge], include_anchors: bool = False, unique: bool = True):
    with open(path, "w", encoding="utf-8", newline="") as f:
        w = csv.DictWriter(f, fieldnames=CSV_FIELDS)
        w.writeheader()
        w.writerows(_edges_to_dicts(edges, include_anchors, unique))
    good(f"Wrote CSV results to {path}")
