# Resolution engine.
#
# MembershipResolver walks direct and nested memberships; the FSP resolver
# adds memberships that only exist as ForeignSecurityPrincipals in other
# domains. Both write into one EdgeAccumulator per run.

from .accumulator import EdgeAccumulator
from .fsp import CachedGroup, ForeignMembershipResolver
from .resolver import MembershipResolver, ResolveStats, resolve

__all__ = [
    "CachedGroup",
    "EdgeAccumulator",
    "ForeignMembershipResolver",
    "MembershipResolver",
    "ResolveStats",
    "resolve",
]
