# GroupHound Exceptions and Error Messages

# =============================================================================
# Exceptions
# =============================================================================


class GroupHoundError(Exception):
    """Base exception for GroupHound operations"""

    pass


class ConfigurationError(GroupHoundError):
    """Invalid or unreachable domain, or unusable run configuration"""

    pass


class LookupNotFound(GroupHoundError):
    """Directory object could not be retrieved (deleted, stale or access denied)"""

    pass


class AttributeUnavailable(GroupHoundError):
    """Optional directory attribute (e.g. objectSid) is missing"""

    pass


class ResolutionCancelled(GroupHoundError):
    """Membership resolution was cancelled before completing"""

    pass


# =============================================================================
# Error Messages
# =============================================================================

ERROR_MESSAGES = {
    "no_domains": "[!] At least one domain is required (-D/--domains)",
    "not_fqdn": (
        "[!] Domain '{domain}' is not in FQDN format\n"
        "[!] LDAP lookups require FQDN domains (e.g., 'corp.local')"
    ),
    "ldap_connect": (
        "[!] Failed to connect to a domain controller for {domain}\n"
        "[!] Check: --dc-ip is correct, DC is reachable, credentials are valid"
    ),
    "unbounded_recursion": (
        "[!] Recursive resolution without --max-depth has no cycle protection\n"
        "[!] Cyclic group nesting (A -> B -> A) will never terminate"
    ),
    "cancelled": "[!] Resolution cancelled, no results were produced",
}
