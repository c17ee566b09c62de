import sys
import threading
import time
from typing import List, Optional, Sequence

from .config import build_parser, validate_args
from .config_model import ResolveConfig
from .directory import DirectoryGateway, LdapDirectory, SnapshotDirectory
from .engine import MembershipResolver
from .exceptions import ERROR_MESSAGES, ConfigurationError, ResolutionCancelled
from .models import MembershipEdge
from .output.printer import print_membership_table, print_run_summary
from .output.writer import write_csv, write_json
from .utils.console import print_banner, print_export_section, spinner
from .utils.logging import debug, error, good, info, set_verbosity, status, warn


def _build_gateway(config: ResolveConfig, args) -> DirectoryGateway:
    if config.offline:
        status(f"Offline mode: loading directory snapshot {config.offline}")
        return SnapshotDirectory.from_file(config.offline)

    auth = config.auth_context(args)
    debug(f"Auth: {auth!r}")
    return LdapDirectory(auth)


def _handle_exports(args, edges: List[MembershipEdge]) -> None:
    unique = not args.raw
    if args.json:
        write_json(args.json, edges, include_anchors=args.include_anchors, unique=unique, silent=True)
        print_export_section("JSON", args.json)
    if args.csv:
        write_csv(args.csv, edges, include_anchors=args.include_anchors, unique=unique)
        print_export_section("CSV", args.csv)


def run(args, cancel_event: Optional[threading.Event] = None) -> List[MembershipEdge]:
    """
    Resolve memberships for validated args and present the results.

    Raises:
        ConfigurationError: Unusable snapshot, domain or credentials
        ResolutionCancelled: cancel_event was set
    """
    config = ResolveConfig.from_args_and_config(args)

    if config.is_unbounded:
        for line in ERROR_MESSAGES["unbounded_recursion"].splitlines():
            warn(line.removeprefix("[!] "))

    gateway = _build_gateway(config, args)
    resolver = MembershipResolver(gateway)
    try:
        status(
            f"Resolving {len(config.identities)} identities across {len(config.domains)} domain(s)"
            + (" with FSP discovery" if config.include_fsp else "")
        )
        start_time = time.perf_counter()
        with spinner("Resolving group memberships"):
            edges = resolver.resolve(
                config.identities,
                config.domains,
                recursive=config.recursive,
                max_depth=config.max_depth,
                include_fsp=config.include_fsp,
                workers=config.threads,
                cancel_event=cancel_event,
            )
        elapsed = time.perf_counter() - start_time
    finally:
        gateway.close()

    good(f"Resolution finished in {elapsed:.2f}s ({len(edges)} raw edges)")
    if resolver.stats.not_found:
        info(f"{resolver.stats.not_found} identity/domain pair(s) had no matching object")
    if config.include_fsp:
        resolver.group_cache.print_stats()

    print_membership_table(edges)
    if not args.no_summary:
        print_run_summary(resolver.stats, edges)

    _handle_exports(args, edges)
    return edges


def main(argv: Optional[Sequence[str]] = None):
    print_banner()
    ap = build_parser()
    args = ap.parse_args(argv)

    # Set verbosity early
    set_verbosity(args.verbose, args.debug)

    cancel_event = threading.Event()
    try:
        validate_args(args)
        run(args, cancel_event=cancel_event)
    except ConfigurationError as e:
        for line in str(e).splitlines():
            error(line.removeprefix("[!] "))
        sys.exit(1)
    except KeyboardInterrupt:
        cancel_event.set()
        error(ERROR_MESSAGES["cancelled"].removeprefix("[!] "))
        sys.exit(130)
    except ResolutionCancelled as e:
        error(str(e).removeprefix("[!] "))
        sys.exit(130)
