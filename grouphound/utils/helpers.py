# Small helpers used across the codebase.
#
# This module contains simple utilities for parsing credentials and
# comma-separated CLI values and for building LDAP base DNs from domains.

from typing import Dict, Iterable, List, Optional, Tuple


def parse_ntlm_hashes(hashes: Optional[str]) -> Tuple[str, str]:
    """
    Parse NTLM hashes from string format.

    Args:
        hashes: Hash string in "LM:NT" or "NT" format, or None/empty

    Returns:
        Tuple of (lmhash, nthash) - empty strings if not provided
    """
    if not hashes:
        return "", ""

    if ":" in hashes:
        lmhash, nthash = hashes.split(":", 1)
        return lmhash, nthash
    else:
        return "", hashes


def domain_to_base_dn(domain: str) -> str:
    """Convert an FQDN ("corp.local") to its base DN ("DC=corp,DC=local")."""
    return ",".join([f"DC={part}" for part in domain.split(".") if part])


def split_csv(value: Optional[str]) -> List[str]:
    """Split a comma-separated CLI value, dropping blanks."""
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def normalize_domains(domains: Iterable[str]) -> List[str]:
    """
    Deduplicate domains case-insensitively, keeping first-seen order.

    Args:
        domains: Domain names in configured order

    Returns:
        Ordered list of unique, stripped domain names
    """
    seen = set()
    ordered = []
    for domain in domains:
        domain = domain.strip()
        if not domain or domain.lower() in seen:
            continue
        seen.add(domain.lower())
        ordered.append(domain)
    return ordered


def parse_dc_map(values: Optional[Iterable[str]], default_domain: Optional[str] = None) -> Dict[str, str]:
    """
    Parse --dc-ip values into a domain -> DC address mapping.

    Accepts "DOMAIN=IP" entries (comma-separated or repeated). A bare address
    is assigned to default_domain.

    Args:
        values: Raw --dc-ip values
        default_domain: Domain for entries without "DOMAIN="

    Returns:
        Mapping of lowercased domain to DC address

    Raises:
        ValueError: If a bare address is given without a default domain
    """
    dc_map: Dict[str, str] = {}
    for value in values or []:
        for entry in split_csv(value):
            if "=" in entry:
                domain, address = entry.split("=", 1)
                dc_map[domain.strip().lower()] = address.strip()
            elif default_domain:
                dc_map[default_domain.lower()] = entry
            else:
                raise ValueError(f"DC address '{entry}' has no domain (use DOMAIN=IP)")
    return dc_map
