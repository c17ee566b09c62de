# Membership edge model.
#
# MembershipEdge is the only output entity of a resolution run. Edges are
# immutable; duplicates may appear in the raw output and are collapsed by
# unique_edges() when a consumer needs one row per membership.

from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, List, Tuple

from .directory import DirectoryObject

# Placeholder written to target_sid when the group's objectSid is unreadable
SID_UNAVAILABLE = "N/A"

ANCHOR_LEVEL = -1
DIRECT_LEVEL = 0


@dataclass(frozen=True)
class MembershipEdge:
    """
    One membership relation: source identity is a member of target group.

    nesting_level is -1 for the synthetic anchor (source == target, used to
    carry the root identity's SID), 0 for direct memberships and 1..N for
    each further level of nesting.
    """

    source_identity: str
    source_domain: str
    source_kind: str
    target_group: str
    target_domain: str
    target_kind: str
    target_sid: str
    nesting_level: int

    @property
    def is_foreign_security_principal(self) -> bool:
        return self.source_domain.lower() != self.target_domain.lower()

    @property
    def is_anchor(self) -> bool:
        return self.nesting_level == ANCHOR_LEVEL

    def uniqueness_key(self, include_level: bool = False) -> Tuple:
        key = (
            self.source_identity.lower(),
            self.target_group.lower(),
            self.source_domain.lower(),
            self.target_domain.lower(),
        )
        if include_level:
            return key + (self.nesting_level,)
        return key

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON/CSV export."""
        data = asdict(self)
        data["is_foreign_security_principal"] = self.is_foreign_security_principal
        return data

    @classmethod
    def between(cls, source: DirectoryObject, target: DirectoryObject, nesting_level: int) -> "MembershipEdge":
        return cls(
            source_identity=source.name,
            source_domain=source.domain,
            source_kind=source.kind.value,
            target_group=target.name,
            target_domain=target.domain,
            target_kind=target.kind.value,
            target_sid=target.sid or SID_UNAVAILABLE,
            nesting_level=nesting_level,
        )

    @classmethod
    def anchor(cls, obj: DirectoryObject) -> "MembershipEdge":
        return cls.between(obj, obj, ANCHOR_LEVEL)


def unique_edges(edges: Iterable[MembershipEdge], include_level: bool = False) -> List[MembershipEdge]:
    """
    Collapse duplicate edges.

    By default edges are unique by (source identity, target group, source
    domain, target domain); nesting level is not part of the key, so the same
    membership reached at two different depths yields one row. The surviving
    row carries the smallest nesting level seen and keeps the position of the
    first occurrence.

    Args:
        edges: Raw edges from a resolution run
        include_level: Also distinguish edges by nesting level

    Returns:
        Deduplicated list of edges
    """
    kept: Dict[Tuple, MembershipEdge] = {}
    for edge in edges:
        key = edge.uniqueness_key(include_level)
        current = kept.get(key)
        if current is None:
            kept[key] = edge
        elif edge.nesting_level < current.nesting_level:
            # dict keeps insertion order on value replacement
            kept[key] = edge
    return list(kept.values())
