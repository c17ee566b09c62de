import argparse
import os
import tomllib
from typing import Any, Dict, List, Optional, Sequence

from rich_argparse import RichHelpFormatter

from .exceptions import ERROR_MESSAGES, ConfigurationError
from .utils.helpers import normalize_domains, parse_dc_map, split_csv
from .utils.logging import warn

CONFIG_PATHS = [
    "grouphound.toml",
    "config/grouphound.toml",
    os.path.expanduser("~/.config/grouphound/grouphound.toml"),
]


class TableRichHelpFormatter(RichHelpFormatter):
    """
    Help formatter with uppercase group names and the GroupHound color scheme.
    """

    styles = {
        **RichHelpFormatter.styles,
        "argparse.groups": "bold cyan",
        "argparse.args": "green",
        "argparse.metavar": "yellow",
        "argparse.help": "white",
    }

    group_name_formatter = str.upper


class OnceOnly(argparse.Action):
    """
    Custom argparse Action to prevent arguments from being specified multiple times.
    Catches a flag (e.g. -D) being swallowed as part of another flag's value.
    """

    def __call__(self, parser, namespace, values, option_string=None):
        current = getattr(namespace, self.dest, None)
        # Values from grouphound.toml arrive as parser defaults and may be overridden once
        if current is not None and current != parser.get_default(self.dest):
            raise argparse.ArgumentError(self, f"Argument {option_string} can only be specified once.")
        setattr(namespace, self.dest, values)


def _csv_value(value: Any) -> str:
    """TOML lists become the comma-separated form the CLI accepts."""
    if isinstance(value, (list, tuple)):
        return ",".join(str(v) for v in value)
    return str(value)


# (section, key) -> argparse dest
_CONFIG_MAP = {
    ("authentication", "username"): "username",
    ("authentication", "password"): "password",
    ("authentication", "domain"): "domain",
    ("authentication", "hashes"): "hashes",
    ("authentication", "kerberos"): "kerberos",
    ("authentication", "aes_key"): "aes_key",
    ("target", "nameserver"): "nameserver",
    ("target", "timeout"): "timeout",
    ("target", "dns_tcp"): "dns_tcp",
    ("target", "threads"): "threads",
    ("target", "offline"): "offline",
    ("resolution", "recursive"): "recursive",
    ("resolution", "max_depth"): "max_depth",
    ("resolution", "fsp"): "fsp",
    ("output", "json"): "json",
    ("output", "csv"): "csv",
    ("output", "include_anchors"): "include_anchors",
    ("output", "raw"): "raw",
    ("output", "no_summary"): "no_summary",
    ("output", "verbose"): "verbose",
    ("output", "debug"): "debug",
}

# Values that may be given as TOML arrays
_CONFIG_LIST_MAP = {
    ("target", "domains"): "domains",
    ("target", "dc_ip"): "dc_ip",
    ("resolution", "identities"): "identity",
}


def config_to_defaults(config_data: Dict[str, Any]) -> Dict[str, Any]:
    """Flatten a parsed grouphound.toml into argparse destinations."""
    defaults = {}
    for (section, key), dest in _CONFIG_MAP.items():
        values = config_data.get(section, {})
        if key in values:
            defaults[dest] = values[key]
    for (section, key), dest in _CONFIG_LIST_MAP.items():
        values = config_data.get(section, {})
        if key in values:
            defaults[dest] = _csv_value(values[key])
    return defaults


def load_config(paths: Optional[Sequence[str]] = None) -> Dict[str, Any]:
    """
    Load configuration from TOML files.

    Priority:
    1. ./grouphound.toml
    2. ./config/grouphound.toml
    3. ~/.config/grouphound/grouphound.toml

    Only the first file found is used.

    Returns:
        argparse defaults derived from the file, empty if none was found
    """
    config_data = {}
    loaded_path = None

    for path in paths if paths is not None else CONFIG_PATHS:
        if os.path.exists(path):
            try:
                with open(path, "rb") as f:
                    config_data = tomllib.load(f)
                loaded_path = path
                break
            except (OSError, tomllib.TOMLDecodeError) as e:
                warn(f"Error loading config file {path}: {e}")

    if not config_data:
        return {}

    if loaded_path == "grouphound.toml":
        # Credentials may live in this file
        warn("Using grouphound.toml from current directory")
        warn("Consider moving it to config/grouphound.toml")

    return config_to_defaults(config_data)


def build_parser(config_paths: Optional[Sequence[str]] = None) -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="grouphound",
        description="Active Directory group membership resolver: nested groups and foreign security principals.",
        formatter_class=TableRichHelpFormatter,
    )

    # Authentication options
    auth = ap.add_argument_group("Authentication options")
    auth.add_argument("-u", "--username", action=OnceOnly, help="Username (required for online mode)")
    auth.add_argument("-p", "--password", action=OnceOnly, help="Password (omit with -k if using Kerberos/ccache)")
    auth.add_argument(
        "-d", "--domain", action=OnceOnly, help="Domain of the authenticating account (default: first of --domains)"
    )
    auth.add_argument("--hashes", help="NTLM hashes in LM:NT format (or NT-only 32-hex) to use instead of password")
    auth.add_argument("-k", "--kerberos", action="store_true", help="Use Kerberos authentication (supports ccache)")
    auth.add_argument(
        "--aes-key",
        dest="aes_key",
        help="AES key for Kerberos authentication (AES-128: 32 hex chars, AES-256: 64 hex chars). Implies -k.",
    )

    # Target selection
    target = ap.add_argument_group("Target options")
    target.add_argument(
        "-i",
        "--identity",
        action=OnceOnly,
        help="Identity or identities to resolve, comma-separated (name, sAMAccountName, UPN or DN)",
    )
    target.add_argument("--identities-file", help="File with identities, one per line")
    target.add_argument(
        "-D",
        "--domains",
        action=OnceOnly,
        help="Domains to search, comma-separated FQDNs in priority order (e.g., corp.local,emea.corp.local)",
    )
    target.add_argument(
        "--dc-ip",
        help="Domain controller address per domain as DOMAIN=IP, comma-separated. "
        "A bare IP applies to --domain. Domains without an entry are discovered via DNS SRV.",
    )
    target.add_argument(
        "--ns",
        "--nameserver",
        dest="nameserver",
        help="DNS nameserver for DC discovery. If not specified, uses --dc-ip or system DNS.",
    )
    target.add_argument("--timeout", type=int, default=10, help="Connection timeout in seconds (default: 10)")
    target.add_argument(
        "--dns-tcp",
        action="store_true",
        help="Force DNS queries over TCP instead of UDP. Required when using SOCKS proxies or proxychains.",
    )
    target.add_argument(
        "--threads",
        type=int,
        default=1,
        help="Number of identity/domain pairs resolved in parallel (default: 1 = sequential)",
    )
    target.add_argument(
        "--offline",
        help="Offline mode: resolve against a directory snapshot JSON file (no authentication required)",
    )

    # Resolution options
    res = ap.add_argument_group("Resolution options")
    res.add_argument(
        "--no-recursive",
        dest="recursive",
        action="store_false",
        default=True,
        help="Only resolve direct memberships (no nested groups)",
    )
    res.add_argument(
        "--max-depth",
        type=int,
        default=None,
        help="Deepest nesting level to expand. Without it, cyclic group nesting never terminates.",
    )
    res.add_argument(
        "--fsp",
        action="store_true",
        help="Discover memberships in other --domains through ForeignSecurityPrincipals (scans every group)",
    )

    # Output options
    out = ap.add_argument_group("Output options")
    out.add_argument("--json", help="Write memberships to a JSON file")
    out.add_argument("--csv", help="Write memberships to a CSV file")
    out.add_argument("--include-anchors", action="store_true", help="Keep the level -1 anchor rows in exports")
    out.add_argument("--raw", action="store_true", help="Export every edge found, without deduplication")
    out.add_argument("--no-summary", action="store_true", help="Disable summary table at the end of the run")

    # Misc
    misc = ap.add_argument_group("Misc")
    misc.add_argument("--verbose", action="store_true", help="Enable verbose output")
    misc.add_argument("--debug", action="store_true", help="Enable debug output (print full stack traces)")

    # Load defaults from config file
    defaults = load_config(config_paths)
    if defaults:
        ap.set_defaults(**defaults)

    return ap


def _read_identities_file(path: str) -> List[str]:
    try:
        with open(path, encoding="utf-8") as f:
            return [line.strip() for line in f if line.strip() and not line.lstrip().startswith("#")]
    except OSError as e:
        raise ConfigurationError(f"[!] Could not read identities file {path}: {e}") from e


def validate_args(args: argparse.Namespace) -> argparse.Namespace:
    """
    Check and normalize parsed arguments.

    Adds args.identities, args.domain_list and args.dc_map.

    Raises:
        ConfigurationError: On missing or invalid values
    """
    identities = split_csv(args.identity)
    if args.identities_file:
        identities.extend(_read_identities_file(args.identities_file))
    if not identities:
        raise ConfigurationError("[!] At least one identity is required (-i/--identity or --identities-file)")
    args.identities = identities

    domains = normalize_domains(split_csv(args.domains))
    if not domains and args.domain:
        domains = [args.domain]
    if not domains:
        raise ConfigurationError(ERROR_MESSAGES["no_domains"])
    args.domain_list = domains

    if args.max_depth is not None and args.max_depth < 0:
        raise ConfigurationError(f"[!] --max-depth must be 0 or greater (got {args.max_depth})")
    if args.threads < 1:
        raise ConfigurationError(f"[!] --threads must be 1 or greater (got {args.threads})")

    if args.aes_key:
        args.kerberos = True

    try:
        args.dc_map = parse_dc_map([args.dc_ip] if args.dc_ip else [], default_domain=args.domain or domains[0])
    except ValueError as e:
        raise ConfigurationError(f"[!] Invalid --dc-ip: {e}") from e

    if not args.offline:
        if not args.username:
            raise ConfigurationError("[!] Online mode requires -u/--username (or use --offline SNAPSHOT)")
        if not (args.password or args.hashes or args.kerberos):
            raise ConfigurationError("[!] Provide -p/--password, --hashes or -k/--aes-key for authentication")
        for domain in domains:
            if "." not in domain:
                raise ConfigurationError(ERROR_MESSAGES["not_fqdn"].format(domain=domain))

    return args
