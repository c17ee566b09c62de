# LDAP utilities for GroupHound
#
# This module provides the shared LDAP connection and entry-parsing
# utilities used by the live directory gateway.

import socket
from typing import Any, Dict, List, Optional

from impacket.ldap import ldap as ldap_impacket
from impacket.ldap import ldapasn1 as ldapasn1_impacket

from .helpers import domain_to_base_dn, parse_ntlm_hashes
from .logging import debug


class LDAPConnectionError(Exception):
    """Failed to connect to domain controller via LDAP"""

    pass


def resolve_dc_hostname(dc_ip: str, domain: str, use_tcp: bool = False) -> Optional[str]:
    """
    Resolve DC IP to hostname for Kerberos SPN construction.

    Tries multiple methods:
    1. DNS PTR lookup via DC itself (most reliable for AD environments)
    2. System reverse DNS lookup
    3. socket.getfqdn

    Args:
        dc_ip: Domain controller IP address
        domain: Domain name (for constructing FQDN)
        use_tcp: Force DNS queries over TCP (required for SOCKS proxies)

    Returns:
        DC hostname (FQDN) or None if resolution fails
    """
    try:
        import dns.resolver
        import dns.reversename

        resolver = dns.resolver.Resolver(configure=False)
        resolver.nameservers = [dc_ip]
        resolver.timeout = 3
        resolver.lifetime = 3

        rev_name = dns.reversename.from_address(dc_ip)
        answers = resolver.resolve(rev_name, "PTR", tcp=use_tcp)
        if answers:
            hostname = str(answers[0]).rstrip(".")
            if hostname and "." not in hostname:
                hostname = f"{hostname}.{domain}"
            if hostname and hostname.lower() != domain.lower():
                return hostname
    except Exception as e:
        debug(f"LDAP: PTR lookup for {dc_ip} failed: {e}")

    try:
        hostname = socket.gethostbyaddr(dc_ip)[0]
        # Reverse DNS sometimes answers with the domain name instead of the DC
        if hostname and hostname.lower() != domain.lower():
            return hostname
    except socket.herror:
        pass

    try:
        hostname = socket.getfqdn(dc_ip)
        if hostname and hostname != dc_ip and hostname.lower() != domain.lower():
            return hostname
    except Exception:
        pass

    return None


def get_ldap_connection(
    dc_ip: Optional[str],
    domain: str,
    username: str,
    password: Optional[str] = None,
    hashes: Optional[str] = None,
    kerberos: bool = False,
    aes_key: Optional[str] = None,
    dc_host: Optional[str] = None,
    use_tcp: bool = False,
    nameserver: Optional[str] = None,
    timeout: int = 10,
    auth_domain: Optional[str] = None,
) -> ldap_impacket.LDAPConnection:
    """
    Establish LDAP connection to a domain controller of the given domain.

    Tries LDAPS (port 636) first, then falls back to LDAP (port 389). If
    dc_ip is not provided, attempts to discover a DC via DNS SRV records.

    Args:
        dc_ip: Domain controller IP address (optional - auto-discovered if missing)
        domain: Domain name (FQDN format, e.g., "domain.local")
        username: Username for authentication
        password: Password (plaintext)
        hashes: NTLM hashes in LM:NT or NT format
        kerberos: Use Kerberos authentication
        aes_key: AES key for Kerberos (128-bit or 256-bit hex string)
        dc_host: DC hostname for Kerberos SPN (optional, will try to resolve)
        use_tcp: Force DNS queries over TCP (required for SOCKS proxies)
        nameserver: DNS server for lookups (defaults to system DNS)
        timeout: Timeout for DC discovery only
        auth_domain: Domain of the authenticating account when it differs
            from the domain being queried (trusted domain binds)

    Returns:
        LDAPConnection object

    Raises:
        LDAPConnectionError: If connection fails
    """
    from .dns import DEFAULT_LDAP_TIMEOUT, get_working_dc

    effective_timeout = timeout if timeout else DEFAULT_LDAP_TIMEOUT

    if not dc_ip:
        dc_ip = get_working_dc(
            domain=domain,
            nameserver=nameserver,
            use_tcp=use_tcp,
            timeout=effective_timeout,
        )
        if not dc_ip:
            raise LDAPConnectionError(
                f"Could not discover DC for domain {domain}. "
                "Specify --dc-ip explicitly or check DNS configuration."
            )
        debug(f"LDAP: Auto-discovered DC for {domain}: {dc_ip}")

    base_dn = domain_to_base_dn(domain)
    login_domain = auth_domain or domain
    lmhash, nthash = parse_ntlm_hashes(hashes)

    # Kerberos needs the DC hostname for the SPN (ldap/dc01.domain.local)
    kerberos_target = dc_host
    if (kerberos or aes_key) and not kerberos_target:
        kerberos_target = resolve_dc_hostname(dc_ip, domain, use_tcp=use_tcp)
        if kerberos_target:
            debug(f"LDAP: Resolved DC hostname for Kerberos SPN: {kerberos_target}")
        else:
            debug("LDAP: Could not resolve DC hostname, Kerberos may fail")
            kerberos_target = dc_ip

    connection_attempts = [
        ("ldaps", 636, True),
        ("ldap", 389, False),
    ]

    last_error = None
    for protocol, port, use_ssl in connection_attempts:
        try:
            # SPN is derived from the URL host, so Kerberos URLs carry no port
            if (kerberos or aes_key) and kerberos_target:
                ldap_url = f"{protocol}://{kerberos_target}"
            else:
                ldap_url = f"{protocol}://{dc_ip}:{port}"
            debug(f"LDAP: Attempting {protocol.upper()} connection to {ldap_url}")

            ldap_conn = ldap_impacket.LDAPConnection(
                ldap_url,
                baseDN=base_dn,
                dstIp=dc_ip,
            )

            if kerberos or aes_key:
                ldap_conn.kerberosLogin(
                    user=username,
                    password=password or "",
                    domain=login_domain,
                    lmhash=lmhash,
                    nthash=nthash,
                    aesKey=aes_key or "",
                    kdcHost=kerberos_target,
                )
            else:
                ldap_conn.login(
                    user=username,
                    password=password or "",
                    domain=login_domain,
                    lmhash=lmhash,
                    nthash=nthash,
                )

            debug(f"LDAP: Successfully connected to {domain} via {protocol.upper()}")
            return ldap_conn

        except Exception as e:
            error_str = str(e)
            debug(f"LDAP: {protocol.upper()} connection failed: {error_str}")
            last_error = e

            if use_ssl and ("certificate" in error_str.lower() or "ssl" in error_str.lower()):
                debug("LDAP: SSL/certificate issue, trying plain LDAP...")
                continue

            if "strongerAuthRequired" in error_str:
                debug("LDAP: DC requires signing/encryption but LDAPS also failed")
                break

            continue

    raise LDAPConnectionError(f"LDAP connection to {domain} failed: {last_error}")


def escape_filter_value(value: str) -> str:
    """Escape a value for use inside an LDAP search filter (RFC 4515)."""
    return (
        value.replace("\\", "\\5c")
        .replace("*", "\\2a")
        .replace("(", "\\28")
        .replace(")", "\\29")
        .replace("\x00", "\\00")
    )


def entry_attributes(entry: Any) -> Dict[str, List[Any]]:
    """
    Flatten an impacket SearchResultEntry into {attribute_name_lower: [values]}.

    objectSid values are kept as raw bytes; everything else is converted to str.
    Ranged attributes ("member;range=0-1499") keep their full type name.
    """
    attributes: Dict[str, List[Any]] = {}
    for attribute in entry["attributes"]:
        attr_name = str(attribute["type"]).lower()
        if attr_name == "objectsid":
            attributes[attr_name] = [val.asOctets() for val in attribute["vals"]]
        else:
            attributes[attr_name] = [str(val) for val in attribute["vals"]]
    return attributes


def is_search_entry(entry: Any) -> bool:
    """True for result entries (search references and done markers are skipped)."""
    return isinstance(entry, ldapasn1_impacket.SearchResultEntry)
