# Data models for GroupHound.
#
# This package contains dataclasses and type definitions for the directory
# objects consumed by the resolver and the membership edges it produces.

from .directory import DirectoryObject, ObjectKind
from .edge import ANCHOR_LEVEL, DIRECT_LEVEL, SID_UNAVAILABLE, MembershipEdge, unique_edges

__all__ = [
    "DirectoryObject",
    "ObjectKind",
    "MembershipEdge",
    "unique_edges",
    "ANCHOR_LEVEL",
    "DIRECT_LEVEL",
    "SID_UNAVAILABLE",
]
