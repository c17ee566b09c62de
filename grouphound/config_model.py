"""Configuration models for GroupHound runs."""

from dataclasses import dataclass, field
from typing import List, Optional

from .auth import AuthContext


@dataclass
class ResolveConfig:
    """
    Consolidated resolution settings from CLI args and config file.

    Merges settings from:
    1. Command-line arguments (highest priority)
    2. grouphound.toml [target]/[resolution] sections (if present)
    3. Defaults
    """

    identities: List[str] = field(default_factory=list)
    domains: List[str] = field(default_factory=list)
    recursive: bool = True
    max_depth: Optional[int] = None
    include_fsp: bool = False
    threads: int = 1
    offline: Optional[str] = None

    @classmethod
    def from_args_and_config(cls, args):
        """
        Create ResolveConfig from validated args (config file values are
        already loaded into the argparse defaults).

        Args:
            args: argparse.Namespace after validate_args()

        Returns:
            ResolveConfig instance
        """
        return cls(
            identities=list(args.identities),
            domains=list(args.domain_list),
            recursive=args.recursive,
            max_depth=args.max_depth,
            include_fsp=args.fsp,
            threads=args.threads,
            offline=args.offline,
        )

    @property
    def is_unbounded(self) -> bool:
        """Recursive without a depth budget: cyclic nesting would never terminate."""
        return self.recursive and self.max_depth is None

    def auth_context(self, args) -> AuthContext:
        """Build the AuthContext used by LdapDirectory for this run."""
        return AuthContext(
            username=args.username or "",
            password=args.password,
            domain=args.domain or self.domains[0],
            hashes=args.hashes,
            aes_key=args.aes_key,
            kerberos=args.kerberos,
            dc_ips=dict(args.dc_map),
            timeout=args.timeout,
            dns_tcp=args.dns_tcp,
            nameserver=args.nameserver,
        )
