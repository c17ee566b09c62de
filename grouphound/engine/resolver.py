# Membership resolution core.
#
# Walks the memberOf graph of each root identity with an explicit worklist
# (LIFO stack plus depth counter) instead of language recursion. Every edge
# found, including FSP edges, goes into one run-scoped EdgeAccumulator;
# only resolve() hands the collected list back.
#
# Known limitation: there is no cycle detection. A cyclic nesting
# (A -> B -> A) with recursive=True and no max_depth never terminates.
# The depth budget is the only backstop.
#
# Thread-safety considerations (workers > 1):
# - EdgeAccumulator and ResolveStats counters are lock-guarded
# - GroupListCache loads each domain once under a per-domain lock
# - The FSP-scanned set is lock-guarded
# - LdapDirectory serializes searches per domain connection

import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field, fields
from typing import Dict, Iterable, List, Optional, Set, Tuple

from ..directory import DirectoryGateway
from ..exceptions import ERROR_MESSAGES, ConfigurationError, LookupNotFound, ResolutionCancelled
from ..models import DirectoryObject, MembershipEdge
from ..utils.cache_manager import GroupListCache
from ..utils.helpers import normalize_domains
from ..utils.logging import debug, warn
from .accumulator import EdgeAccumulator
from .fsp import ForeignMembershipResolver


@dataclass
class ResolveStats:
    """Counters for one resolution run."""

    roots_resolved: int = 0
    """(domain, identity) pairs whose root object was found."""

    not_found: int = 0
    """(domain, identity) pairs whose root object does not exist."""

    lookups: int = 0
    """Directory lookups issued by the traversal."""

    lookup_failures: int = 0
    """Memberships skipped because the group could not be retrieved."""

    budget_stops: int = 0
    """Branches not expanded because max_depth was reached."""

    fsp_scans: int = 0
    """Objects checked for foreign memberships."""

    fsp_matches: int = 0
    """FSP edges emitted."""

    deepest_level: int = -1
    """Highest nesting level emitted."""

    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def bump(self, counter: str, amount: int = 1) -> None:
        with self._lock:
            setattr(self, counter, getattr(self, counter) + amount)

    def record_level(self, level: int) -> None:
        with self._lock:
            if level > self.deepest_level:
                self.deepest_level = level

    def to_dict(self) -> Dict[str, int]:
        with self._lock:
            return {f.name: getattr(self, f.name) for f in fields(self) if f.name != "_lock"}


@dataclass(frozen=True)
class _WorkItem:
    identity: str
    domain: str
    depth: int
    root: bool


class MembershipResolver:
    """
    Resolves direct, nested and foreign group memberships.

    Usage:
        resolver = MembershipResolver(SnapshotDirectory.from_file("corp.json"))
        edges = resolver.resolve(["alice"], ["corp.local"], max_depth=5)
        print(resolver.stats.to_dict())

    Args:
        gateway: Directory Gateway, the resolver's only data source
    """

    def __init__(self, gateway: DirectoryGateway):
        self.gateway = gateway
        self.stats = ResolveStats()

        # Per-run state, reset by resolve()
        self._domains: List[str] = []
        self._recursive = True
        self._max_depth: Optional[int] = None
        self._include_fsp = False
        self._cancel_event = threading.Event()
        self._accumulator = EdgeAccumulator()
        self.group_cache = GroupListCache()
        self._fsp: Optional[ForeignMembershipResolver] = None
        self._fsp_scanned: Set[Tuple[str, str]] = set()
        self._fsp_lock = threading.Lock()

    def resolve(
        self,
        identities: Iterable[str],
        domains: Iterable[str],
        recursive: bool = True,
        max_depth: Optional[int] = None,
        include_fsp: bool = False,
        workers: int = 1,
        cancel_event: Optional[threading.Event] = None,
    ) -> List[MembershipEdge]:
        """
        Resolve every identity in every domain.

        Args:
            identities: Names, account names, UPNs or DNs to start from
            domains: Ordered domain list; all must pass validate_domain
            recursive: Follow nested group memberships
            max_depth: Deepest nesting level to expand (None = unbounded)
            include_fsp: Also discover memberships through ForeignSecurityPrincipals
            workers: Number of (domain, identity) roots resolved in parallel
            cancel_event: When set, the run stops at the next work item

        Returns:
            Raw edge list, anchors and duplicates included (see unique_edges)

        Raises:
            ConfigurationError: Empty domain list, bad max_depth or rejected domain
            ResolutionCancelled: cancel_event was set during the run
        """
        domain_list = normalize_domains(domains)
        if not domain_list:
            raise ConfigurationError(ERROR_MESSAGES["no_domains"])
        if max_depth is not None and max_depth < 0:
            raise ConfigurationError(f"[!] max_depth must be >= 0 (got {max_depth})")

        identity_list: List[str] = []
        for identity in identities:
            identity = identity.strip() if identity else ""
            if identity and identity not in identity_list:
                identity_list.append(identity)

        # Validated once, before any traversal
        for domain in domain_list:
            self.gateway.validate_domain(domain)

        if recursive and max_depth is None:
            debug("Resolver: Unbounded recursion, cyclic nesting will not terminate")

        self._start_run(domain_list, recursive, max_depth, include_fsp, cancel_event)

        roots = [(domain, identity) for domain in domain_list for identity in identity_list]
        if workers > 1 and len(roots) > 1:
            self._run_parallel(roots, workers)
        else:
            for domain, identity in roots:
                self._expand_root(domain, identity)

        edges = self._accumulator.edges()
        debug(f"Resolver: {len(edges)} raw edges from {len(roots)} roots")
        return edges

    def _start_run(
        self,
        domains: List[str],
        recursive: bool,
        max_depth: Optional[int],
        include_fsp: bool,
        cancel_event: Optional[threading.Event],
    ) -> None:
        self.stats = ResolveStats()
        self._domains = domains
        self._recursive = recursive
        self._max_depth = max_depth
        self._include_fsp = include_fsp
        self._cancel_event = cancel_event if cancel_event is not None else threading.Event()
        self._accumulator = EdgeAccumulator()
        self.group_cache = GroupListCache()
        self._fsp = ForeignMembershipResolver(self.gateway, self.group_cache, self._accumulator)
        self._fsp_scanned = set()

    def _run_parallel(self, roots: List[Tuple[str, str]], workers: int) -> None:
        debug(f"Resolver: Resolving {len(roots)} roots with {workers} workers")
        executor = ThreadPoolExecutor(max_workers=workers)
        try:
            futures = {
                executor.submit(self._expand_root, domain, identity): (domain, identity)
                for domain, identity in roots
            }
            for future in as_completed(futures):
                # Re-raises ResolutionCancelled (and gateway bugs) from the worker
                future.result()
        except BaseException:
            # KeyboardInterrupt lands here in the main thread; workers only stop
            # once they see the token at their next work item
            self._cancel_event.set()
            executor.shutdown(wait=True, cancel_futures=True)
            raise
        executor.shutdown(wait=True)

    def _check_cancelled(self) -> None:
        if self._cancel_event.is_set():
            raise ResolutionCancelled(ERROR_MESSAGES["cancelled"])

    # ------------------------------------------------------------------
    # Traversal
    # ------------------------------------------------------------------

    def _expand_root(self, domain: str, identity: str) -> None:
        stack = [_WorkItem(identity, domain, 0, True)]
        while stack:
            self._check_cancelled()
            item = stack.pop()
            # Reversed so siblings are expanded in memberOf order
            stack.extend(reversed(self._expand(item)))

    def _expand(self, item: _WorkItem) -> List[_WorkItem]:
        obj = self._lookup(item.domain, item.identity, by_account_name=not item.root)
        if obj is None:
            if item.root:
                self.stats.bump("not_found")
                debug(f"Resolver: '{item.identity}' not found in {item.domain}, skipping")
            else:
                self.stats.bump("lookup_failures")
                warn(f"Could not expand nested group {item.domain}\\{item.identity}", verbose_only=True)
            return []

        if item.root:
            self.stats.bump("roots_resolved")
            self._accumulator.add(MembershipEdge.anchor(obj))
            self._scan_foreign(obj)

        children: List[_WorkItem] = []
        for group_ref in obj.member_of:
            group = self._lookup(item.domain, group_ref)
            if group is None:
                self.stats.bump("lookup_failures")
                warn(f"Skipping membership {obj.name} -> {group_ref} in {item.domain}", verbose_only=True)
                continue

            self._accumulator.add(MembershipEdge.between(obj, group, item.depth))
            self.stats.record_level(item.depth)
            self._scan_foreign(group)

            if not self._recursive or not group.is_group or not group.member_of:
                continue
            if self._max_depth is not None and item.depth >= self._max_depth:
                self.stats.bump("budget_stops")
                debug(f"Resolver: Depth budget {self._max_depth} reached at {item.domain}\\{group.name}")
                continue
            children.append(_WorkItem(group.account_name, item.domain, item.depth + 1, False))

        return children

    def _lookup(self, domain: str, name: str, by_account_name: bool = False) -> Optional[DirectoryObject]:
        """Look an object up, turning LookupNotFound into None."""
        self.stats.bump("lookups")
        try:
            if by_account_name:
                return self.gateway.lookup_object_by_account_name(domain, name)
            return self.gateway.lookup_object(domain, name)
        except LookupNotFound as e:
            debug(f"Resolver: Lookup of '{name}' in {domain} failed: {e}")
            return None

    def _scan_foreign(self, obj: DirectoryObject) -> None:
        """Run FSP discovery for obj, at most once per (domain, object) per run."""
        if not self._include_fsp:
            return

        key = (obj.domain.lower(), (obj.distinguished_name or obj.account_name).lower())
        with self._fsp_lock:
            if key in self._fsp_scanned:
                return
            self._fsp_scanned.add(key)

        others = [d for d in self._domains if d.lower() != obj.domain.lower()]
        if not others:
            return

        self.stats.bump("fsp_scans")
        edges = self._fsp.find_foreign_memberships(obj, obj.domain, others)
        if edges:
            self.stats.bump("fsp_matches", len(edges))


def resolve(
    gateway: DirectoryGateway,
    identities: Iterable[str],
    domains: Iterable[str],
    recursive: bool = True,
    max_depth: Optional[int] = None,
    include_fsp: bool = False,
    workers: int = 1,
    cancel_event: Optional[threading.Event] = None,
) -> List[MembershipEdge]:
    """Resolve memberships with a throwaway MembershipResolver."""
    return MembershipResolver(gateway).resolve(
        identities,
        domains,
        recursive=recursive,
        max_depth=max_depth,
        include_fsp=include_fsp,
        workers=workers,
        cancel_event=cancel_event,
    )
