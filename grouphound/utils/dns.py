# Domain controller discovery for GroupHound.
#
# Every configured domain needs its own DC. Domains without a --dc-ip entry
# are located through _ldap._tcp.dc._msdcs.<domain> SRV records; the first
# candidate answering on LDAPS or LDAP is used.

import ipaddress
import socket
from typing import List, Optional

import dns.resolver

from .logging import debug, warn

DEFAULT_DNS_TIMEOUT = 5

DEFAULT_LDAP_TIMEOUT = 10

# Probe order: LDAPS first, matching get_ldap_connection
LDAP_PORTS = (636, 389)


def _resolver(nameserver: Optional[str], timeout: int) -> dns.resolver.Resolver:
    """System-configured resolver, pointed at nameserver when one is given."""
    resolver = dns.resolver.Resolver(configure=nameserver is None)
    if nameserver:
        resolver.nameservers = [nameserver]
    resolver.timeout = timeout
    resolver.lifetime = timeout
    return resolver


def is_ip_address(value: str) -> bool:
    try:
        ipaddress.ip_address(value)
    except ValueError:
        return False
    return True


def discover_domain_controllers(
    domain: str,
    nameserver: Optional[str] = None,
    use_tcp: bool = False,
    timeout: int = DEFAULT_DNS_TIMEOUT,
) -> List[str]:
    """
    List the DCs of a domain, best candidate first.

    SRV targets are ordered by priority (ascending) and weight (descending)
    and deduplicated. Without SRV answers, the domain name's own A record is
    the only candidate.

    Args:
        domain: Domain FQDN (e.g., "emea.corp.local")
        nameserver: DNS server to query instead of the system configuration
        use_tcp: Query over TCP (SOCKS proxies)
        timeout: DNS timeout in seconds

    Returns:
        DC hostnames or addresses, possibly empty
    """
    srv_name = f"_ldap._tcp.dc._msdcs.{domain}"
    try:
        answers = _resolver(nameserver, timeout).resolve(srv_name, "SRV", tcp=use_tcp)
    except Exception as e:
        debug(f"DNS: SRV lookup {srv_name} failed: {e}")
        answers = []

    dcs: List[str] = []
    for rdata in sorted(answers, key=lambda r: (r.priority, -r.weight)):
        host = str(rdata.target).rstrip(".")
        if host and host not in dcs:
            dcs.append(host)
    if dcs:
        debug(f"DNS: {domain} has {len(dcs)} DC(s) via SRV: {', '.join(dcs)}")
        return dcs

    address = resolve_hostname(domain, nameserver=nameserver, use_tcp=use_tcp, timeout=timeout)
    if address:
        debug(f"DNS: No SRV records for {domain}, using its A record {address}")
        return [address]
    return []


def resolve_hostname(
    hostname: str,
    nameserver: Optional[str] = None,
    use_tcp: bool = False,
    timeout: int = DEFAULT_DNS_TIMEOUT,
) -> Optional[str]:
    """Resolve a hostname to an IPv4 address; addresses are returned unchanged."""
    if is_ip_address(hostname):
        return hostname

    try:
        if nameserver:
            answers = _resolver(nameserver, timeout).resolve(hostname, "A", tcp=use_tcp)
            return str(answers[0]) if answers else None
        return socket.gethostbyname(hostname)
    except Exception as e:
        debug(f"DNS: Could not resolve {hostname}: {e}")
        return None


def ldap_port_open(host: str, timeout: int = 3) -> Optional[int]:
    """Return the first LDAP port accepting TCP connections on host, or None."""
    for port in LDAP_PORTS:
        try:
            with socket.create_connection((host, port), timeout=timeout):
                return port
        except OSError:
            continue
    return None


def get_working_dc(
    domain: str,
    dc_ip: Optional[str] = None,
    nameserver: Optional[str] = None,
    use_tcp: bool = False,
    timeout: int = DEFAULT_LDAP_TIMEOUT,
) -> Optional[str]:
    """
    Pick the DC address used for a domain's LDAP connection.

    An explicit dc_ip wins. Otherwise the discovered candidates are probed in
    order; if none answers, the first resolvable one is returned so the LDAP
    layer reports the real connection error.

    Returns:
        DC address, or None when nothing could be discovered
    """
    if dc_ip:
        return dc_ip

    candidates = discover_domain_controllers(domain, nameserver=nameserver, use_tcp=use_tcp)
    if not candidates:
        warn(f"Could not discover any DCs for domain {domain}")
        return None

    fallback = None
    for candidate in candidates:
        address = resolve_hostname(candidate, nameserver=nameserver, use_tcp=use_tcp, timeout=timeout)
        if not address:
            debug(f"DNS: Could not resolve DC hostname {candidate}")
            continue
        fallback = fallback or address
        port = ldap_port_open(address, timeout=min(timeout, 3))
        if port:
            debug(f"DNS: DC {candidate} ({address}) answers on {port} for {domain}")
            return address
        debug(f"DNS: DC {candidate} ({address}) not reachable on LDAP ports")

    if fallback:
        warn(f"No DC responded on LDAP ports for {domain}, trying {fallback} anyway")
    return fallback
