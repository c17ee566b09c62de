# Live Active Directory gateway over impacket LDAP.
#
# One authenticated connection is opened per configured domain and reused
# for the whole run. impacket connections are not thread-safe, so every
# search on a domain is serialized through that domain's lock.

import contextlib
import threading
from typing import Dict, List, Optional

from impacket.ldap import ldap as ldap_impacket
from impacket.ldap import ldapasn1 as ldapasn1_impacket

from ..auth import AuthContext
from ..exceptions import ERROR_MESSAGES, ConfigurationError, LookupNotFound
from ..models import DirectoryObject, ObjectKind
from ..utils.helpers import domain_to_base_dn
from ..utils.ldap import (
    LDAPConnectionError,
    entry_attributes,
    escape_filter_value,
    get_ldap_connection,
    is_search_entry,
)
from ..utils.logging import debug
from ..utils.sid import binary_to_sid
from .base import DirectoryGateway, GroupListing

# Users (not computers or contacts) and groups only
PRINCIPAL_FILTER = "(|(&(objectCategory=person)(objectClass=user))(objectClass=group))"

OBJECT_ATTRIBUTES = [
    "name",
    "sAMAccountName",
    "userPrincipalName",
    "displayName",
    "distinguishedName",
    "objectSid",
    "objectClass",
    "memberOf",
]

DEFAULT_PAGE_SIZE = 500


class LdapDirectory(DirectoryGateway):
    """
    Directory Gateway backed by LDAP binds to each configured domain.

    Args:
        auth: Credentials and per-domain DC addresses
        page_size: Page size for bulk group listings
    """

    def __init__(self, auth: AuthContext, page_size: int = DEFAULT_PAGE_SIZE):
        self.auth = auth
        self.page_size = page_size
        self._connections: Dict[str, ldap_impacket.LDAPConnection] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Connections
    # ------------------------------------------------------------------

    def _domain_lock(self, domain: str) -> threading.Lock:
        with self._registry_lock:
            return self._locks.setdefault(domain.lower(), threading.Lock())

    def _connect(self, domain: str) -> ldap_impacket.LDAPConnection:
        return get_ldap_connection(
            dc_ip=self.auth.dc_for(domain),
            domain=domain,
            username=self.auth.username,
            password=self.auth.password,
            hashes=self.auth.hashes,
            kerberos=self.auth.uses_kerberos,
            aes_key=self.auth.aes_key,
            use_tcp=self.auth.dns_tcp,
            nameserver=self.auth.nameserver,
            timeout=self.auth.timeout,
            auth_domain=self.auth.domain or None,
        )

    def _connection(self, domain: str) -> ldap_impacket.LDAPConnection:
        """Return the domain's connection, opening it on first use. Caller holds the domain lock."""
        key = domain.lower()
        conn = self._connections.get(key)
        if conn is None:
            conn = self._connect(domain)
            self._connections[key] = conn
        return conn

    def validate_domain(self, domain: str) -> None:
        if not domain or "." not in domain:
            raise ConfigurationError(ERROR_MESSAGES["not_fqdn"].format(domain=domain))
        with self._domain_lock(domain):
            try:
                self._connection(domain)
            except LDAPConnectionError as e:
                debug(f"LDAP: Validation of {domain} failed: {e}")
                raise ConfigurationError(ERROR_MESSAGES["ldap_connect"].format(domain=domain)) from e

    def close(self) -> None:
        with self._registry_lock:
            for conn in self._connections.values():
                with contextlib.suppress(Exception):
                    conn.close()
            self._connections.clear()

    # ------------------------------------------------------------------
    # Searches
    # ------------------------------------------------------------------

    def _search(
        self,
        domain: str,
        search_filter: str,
        attributes: List[str],
        search_base: Optional[str] = None,
        base_scope: bool = False,
        paged: bool = False,
    ) -> List[Dict[str, List]]:
        """
        Run a search and return flattened entries.

        Raises:
            LookupNotFound: If the search fails (connection, permissions, bad base)
        """
        controls = None
        if paged:
            controls = [ldapasn1_impacket.SimplePagedResultsControl(criticality=True, size=self.page_size)]
        scope = ldapasn1_impacket.Scope("baseObject") if base_scope else None

        with self._domain_lock(domain):
            try:
                conn = self._connection(domain)
                results = conn.search(
                    searchBase=search_base or domain_to_base_dn(domain),
                    scope=scope,
                    searchFilter=search_filter,
                    attributes=attributes,
                    sizeLimit=0,
                    searchControls=controls,
                )
            except Exception as e:
                raise LookupNotFound(f"LDAP search in {domain} failed: {e}") from e

        return [entry_attributes(entry) for entry in results if is_search_entry(entry)]

    @staticmethod
    def _first(attrs: Dict[str, List], name: str) -> Optional[str]:
        values = attrs.get(name.lower())
        return values[0] if values else None

    def _to_object(self, attrs: Dict[str, List], domain: str) -> DirectoryObject:
        object_classes = {c.lower() for c in attrs.get("objectclass", [])}
        kind = ObjectKind.GROUP if "group" in object_classes else ObjectKind.USER

        sid = None
        raw_sid = attrs.get("objectsid")
        if raw_sid:
            sid = binary_to_sid(raw_sid[0])

        account_name = self._first(attrs, "sAMAccountName") or ""
        name = self._first(attrs, "name") or account_name

        return DirectoryObject(
            name=name,
            account_name=account_name or name,
            kind=kind,
            domain=domain,
            distinguished_name=self._first(attrs, "distinguishedName") or "",
            principal_name=self._first(attrs, "userPrincipalName"),
            display_name=self._first(attrs, "displayName"),
            sid=sid,
            member_of=tuple(attrs.get("memberof", [])),
        )

    def _pick(self, entries: List[Dict[str, List]], domain: str, wanted: str) -> Optional[DirectoryObject]:
        if not entries:
            return None
        objects = [self._to_object(attrs, domain) for attrs in entries]
        if len(objects) > 1:
            debug(f"LDAP: {len(objects)} objects in {domain} match '{wanted}', preferring exact account name")
            for obj in objects:
                if obj.account_name.lower() == wanted.lower():
                    return obj
        return objects[0]

    # ------------------------------------------------------------------
    # Gateway operations
    # ------------------------------------------------------------------

    def lookup_object(self, domain: str, name_or_alias: str) -> Optional[DirectoryObject]:
        value = escape_filter_value(name_or_alias)
        name_filter = (
            f"(|(name={value})(sAMAccountName={value})(userPrincipalName={value})"
            f"(displayName={value})(distinguishedName={value}))"
        )
        search_filter = f"(&{PRINCIPAL_FILTER}{name_filter})"
        debug(f"LDAP: Looking up '{name_or_alias}' in {domain}")
        return self._pick(self._search(domain, search_filter, OBJECT_ATTRIBUTES), domain, name_or_alias)

    def lookup_object_by_account_name(self, domain: str, account_name: str) -> Optional[DirectoryObject]:
        search_filter = f"(&{PRINCIPAL_FILTER}(sAMAccountName={escape_filter_value(account_name)}))"
        debug(f"LDAP: Looking up account '{account_name}' in {domain}")
        return self._pick(self._search(domain, search_filter, OBJECT_ATTRIBUTES), domain, account_name)

    def list_groups_with_members(self, domain: str) -> GroupListing:
        debug(f"LDAP: Listing groups with members in {domain}")
        entries = self._search(
            domain,
            "(&(objectClass=group)(member=*))",
            OBJECT_ATTRIBUTES + ["member"],
            paged=True,
        )

        listing: GroupListing = []
        for attrs in entries:
            group = self._to_object(attrs, domain)
            listing.append((group, self._collect_members(domain, group.distinguished_name, attrs)))

        debug(f"LDAP: {len(listing)} groups with members in {domain}")
        return listing

    def _collect_members(self, domain: str, group_dn: str, attrs: Dict[str, List]) -> List[str]:
        """
        Gather the full member list, following ranged retrieval.

        Large groups return "member;range=0-1499" instead of "member"; the
        remaining ranges are fetched with base-scoped searches on the group.
        """
        members = list(attrs.get("member", []))
        ranged = [key for key in attrs if key.startswith("member;range=")]

        while ranged:
            range_key = ranged[0]
            members.extend(attrs[range_key])
            upper = range_key.rsplit("-", 1)[-1]
            if upper == "*":
                break

            next_range = f"member;range={int(upper) + 1}-*"
            debug(f"LDAP: Fetching {next_range} for {group_dn}")
            rows = self._search(
                domain,
                "(objectClass=group)",
                [next_range],
                search_base=group_dn,
                base_scope=True,
            )
            if not rows:
                break
            attrs = rows[0]
            ranged = [key for key in attrs if key.startswith("member;range=")]

        return members
