# Authentication context dataclass.
#
# This module provides a centralized AuthContext dataclass that bundles
# all authentication-related parameters used to bind to every configured
# domain.
#
# Usage:
#     auth = AuthContext(
#         username="admin",
#         password="secret",
#         domain="corp.local",
#         dc_ips={"corp.local": "192.168.1.1"},
#     )
#     directory = LdapDirectory(auth)

from dataclasses import dataclass, field
from typing import Dict, Optional


@dataclass
class AuthContext:
    """
    Bundles all authentication-related parameters for GroupHound operations.

    The same credentials are used against every configured domain; trusts
    must allow the authenticating account to read the other domains.

    Attributes:
        username: Username for LDAP binds
        password: Password (mutually exclusive with hashes for auth)
        domain: Domain the account belongs to
        hashes: NTLM hashes in LMHASH:NTHASH format (alternative to password)
        aes_key: AES key for Kerberos (128-bit or 256-bit)
        kerberos: Use Kerberos authentication instead of NTLM
        dc_ips: Domain controller address per domain (lowercased FQDN keys)
        timeout: Connection/discovery timeout in seconds
        dns_tcp: Force DNS queries over TCP (for SOCKS proxies)
        nameserver: DNS nameserver for DC discovery
    """

    username: str = ""
    password: Optional[str] = None
    domain: str = ""
    hashes: Optional[str] = None
    aes_key: Optional[str] = None
    kerberos: bool = False
    dc_ips: Dict[str, str] = field(default_factory=dict)
    timeout: int = 10
    dns_tcp: bool = False
    nameserver: Optional[str] = None

    @property
    def has_credentials(self) -> bool:
        """Check if valid credentials are configured."""
        return bool(self.username and (self.password or self.hashes or self.aes_key or self.kerberos))

    @property
    def uses_kerberos(self) -> bool:
        """AES key implies Kerberos authentication."""
        return self.kerberos or bool(self.aes_key)

    def dc_for(self, domain: str) -> Optional[str]:
        """DC address configured for a domain, None to auto-discover."""
        return self.dc_ips.get(domain.lower())

    def __repr__(self) -> str:
        """Safe repr that doesn't expose credentials."""
        return (
            f"AuthContext(username={self.username!r}, domain={self.domain!r}, "
            f"kerberos={self.kerberos}, dc_ips={self.dc_ips!r}, "
            f"has_password={self.password is not None}, "
            f"has_hashes={self.hashes is not None}, "
            f"has_aes_key={self.aes_key is not None})"
        )
