# Foreign Security Principal (FSP) cross-domain resolution.
#
# When a principal from domain A is added to a group in domain B, B stores
# it as CN=<SID>,CN=ForeignSecurityPrincipals,<B root>. Nothing on the A
# side records this membership, so it can only be found by scanning the
# member lists of B's groups for that reference.

from dataclasses import dataclass
from typing import FrozenSet, Iterable, List, Optional

from ..directory import DirectoryGateway
from ..exceptions import AttributeUnavailable, LookupNotFound
from ..models import DIRECT_LEVEL, SID_UNAVAILABLE, DirectoryObject, MembershipEdge
from ..utils.cache_manager import GroupListCache
from ..utils.logging import debug, warn
from ..utils.sid import fsp_reference
from .accumulator import EdgeAccumulator


@dataclass(frozen=True)
class CachedGroup:
    """A group from a bulk listing with its member DNs lowercased for matching."""

    group: DirectoryObject
    members: FrozenSet[str]


class ForeignMembershipResolver:
    """
    Finds the groups of other domains an object belongs to through FSP records.

    Each other domain's group listing is fetched through the shared
    GroupListCache, so a run loads it once no matter how many objects are
    checked against it.

    Args:
        gateway: Directory Gateway used for listings and group lookups
        group_cache: Run-scoped listing cache (a private one is created if omitted)
        accumulator: Optional accumulator that receives every emitted edge
    """

    def __init__(
        self,
        gateway: DirectoryGateway,
        group_cache: Optional[GroupListCache] = None,
        accumulator: Optional[EdgeAccumulator] = None,
    ):
        self.gateway = gateway
        self.group_cache = group_cache if group_cache is not None else GroupListCache()
        self.accumulator = accumulator

    def _load_listing(self, domain: str) -> List[CachedGroup]:
        try:
            listing = self.gateway.list_groups_with_members(domain)
        except LookupNotFound as e:
            warn(f"FSP: Could not list groups of {domain}, foreign memberships there are skipped: {e}")
            return []
        return [CachedGroup(group, frozenset(m.lower() for m in members)) for group, members in listing]

    def groups_of(self, domain: str) -> List[CachedGroup]:
        """Bulk group listing for a domain, loaded at most once per cache."""
        return self.group_cache.get_or_load(domain, self._load_listing)

    def _resolve_group(self, domain: str, group: DirectoryObject) -> DirectoryObject:
        try:
            resolved = self.gateway.lookup_object_by_account_name(domain, group.account_name)
        except LookupNotFound as e:
            debug(f"FSP: Lookup of {domain}\\{group.account_name} failed, using listed attributes: {e}")
            resolved = None
        return resolved or group

    def find_foreign_memberships(
        self,
        obj: DirectoryObject,
        home_domain: str,
        other_domains: Iterable[str],
    ) -> List[MembershipEdge]:
        """
        Emit an edge for every group in other_domains that lists obj as an FSP.

        The home domain is never scanned, even if passed in other_domains.
        Objects without a SID cannot be matched and yield no edges.

        Args:
            obj: Principal to look for
            home_domain: Domain obj lives in
            other_domains: Domains whose groups are scanned

        Returns:
            Edges found (also appended to the accumulator, if any)
        """
        try:
            sid = obj.require_sid()
        except AttributeUnavailable as e:
            debug(f"FSP: Skipping {home_domain}\\{obj.name}: {e}")
            return []

        edges: List[MembershipEdge] = []
        for other_domain in other_domains:
            if other_domain.lower() == home_domain.lower():
                continue

            reference = fsp_reference(sid, self.gateway.directory_root(other_domain)).lower()
            for cached in self.groups_of(other_domain):
                if reference not in cached.members:
                    continue

                target = self._resolve_group(other_domain, cached.group)
                debug(f"FSP: {home_domain}\\{obj.name} is a foreign member of {other_domain}\\{target.name}")
                edges.append(
                    MembershipEdge(
                        source_identity=obj.name,
                        source_domain=home_domain,
                        source_kind=obj.kind.value,
                        target_group=target.name,
                        target_domain=other_domain,
                        target_kind=target.kind.value,
                        target_sid=target.sid or SID_UNAVAILABLE,
                        nesting_level=DIRECT_LEVEL,
                    )
                )

        if self.accumulator is not None and edges:
            self.accumulator.extend(edges)
        return edges
