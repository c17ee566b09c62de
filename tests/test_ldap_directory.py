"""
Test suite for the LDAP directory gateway.

impacket connections are replaced with MagicMocks; search results are plain
dicts in the shape impacket entries are read (attributes -> type/vals).
"""

from unittest.mock import MagicMock, patch

import pytest

from grouphound.auth import AuthContext
from grouphound.directory import LdapDirectory
from grouphound.exceptions import ConfigurationError, LookupNotFound
from grouphound.models import ObjectKind
from grouphound.utils.ldap import LDAPConnectionError
from grouphound.utils.sid import sid_to_binary


def make_entry(**attrs):
    """Build a search entry; objectSid is given as a SID string."""
    attributes = []
    for name, values in attrs.items():
        if not isinstance(values, list):
            values = [values]
        if name == "objectSid":
            values = [MagicMock(**{"asOctets.return_value": sid_to_binary(v)}) for v in values]
        attributes.append({"type": name, "vals": values})
    return {"attributes": attributes}


@pytest.fixture
def auth():
    return AuthContext(
        username="auditor",
        password="pw",
        domain="corp.local",
        dc_ips={"corp.local": "10.0.0.10"},
    )


@pytest.fixture
def conn():
    return MagicMock()


@pytest.fixture
def directory(auth, conn):
    with patch("grouphound.directory.ldap_directory.get_ldap_connection", return_value=conn) as mock_connect, patch(
        "grouphound.directory.ldap_directory.is_search_entry", side_effect=lambda e: isinstance(e, dict)
    ):
        gateway = LdapDirectory(auth)
        gateway.mock_connect = mock_connect
        yield gateway


# ============================================================================
# Test: Domain validation and connections
# ============================================================================


class TestValidateDomain:
    """Tests for validate_domain"""

    def test_rejects_non_fqdn(self, directory):
        """NetBIOS-style names are not accepted"""
        with pytest.raises(ConfigurationError, match="FQDN"):
            directory.validate_domain("CORP")
        directory.mock_connect.assert_not_called()

    def test_connects_with_domain_dc(self, directory):
        """Should bind to the DC configured for the domain"""
        directory.validate_domain("corp.local")

        kwargs = directory.mock_connect.call_args[1]
        assert kwargs["dc_ip"] == "10.0.0.10"
        assert kwargs["domain"] == "corp.local"
        assert kwargs["auth_domain"] == "corp.local"

    def test_unconfigured_domain_discovers_dc(self, directory):
        """Domains without --dc-ip get dc_ip=None for DNS discovery"""
        directory.validate_domain("emea.corp.local")

        kwargs = directory.mock_connect.call_args[1]
        assert kwargs["dc_ip"] is None
        assert kwargs["auth_domain"] == "corp.local"

    def test_connection_failure_is_configuration_error(self, directory):
        """LDAP bind failures surface as ConfigurationError"""
        directory.mock_connect.side_effect = LDAPConnectionError("invalidCredentials")

        with pytest.raises(ConfigurationError):
            directory.validate_domain("corp.local")

    def test_connection_reused(self, directory, conn):
        """One connection per domain for the whole run"""
        conn.search.return_value = []

        directory.validate_domain("corp.local")
        directory.lookup_object("corp.local", "alice")
        directory.lookup_object("CORP.LOCAL", "bob")

        assert directory.mock_connect.call_count == 1

    def test_close(self, directory, conn):
        """close() closes every open connection"""
        directory.validate_domain("corp.local")

        directory.close()

        conn.close.assert_called_once()


# ============================================================================
# Test: Lookups
# ============================================================================


class TestLookupObject:
    """Tests for lookup_object and lookup_object_by_account_name"""

    def test_user_lookup(self, directory, conn):
        """Should map LDAP attributes onto a DirectoryObject"""
        conn.search.return_value = [
            make_entry(
                name="Alice Smith",
                sAMAccountName="asmith",
                userPrincipalName="asmith@corp.local",
                distinguishedName="CN=Alice Smith,OU=Staff,DC=corp,DC=local",
                objectSid="S-1-5-21-1000-2000-3000-1105",
                objectClass=["top", "person", "organizationalPerson", "user"],
                memberOf=["CN=G1,DC=corp,DC=local"],
            ),
            MagicMock(),  # search reference, skipped
        ]

        obj = directory.lookup_object("corp.local", "asmith@corp.local")

        assert obj.name == "Alice Smith"
        assert obj.account_name == "asmith"
        assert obj.kind == ObjectKind.USER
        assert obj.domain == "corp.local"
        assert obj.sid == "S-1-5-21-1000-2000-3000-1105"
        assert obj.member_of == ("CN=G1,DC=corp,DC=local",)

    def test_filter_restricts_kinds_and_escapes(self, directory, conn):
        """Should only search users and groups, with escaped values"""
        conn.search.return_value = []

        directory.lookup_object("corp.local", "Ops (EMEA)")

        search_filter = conn.search.call_args[1]["searchFilter"]
        assert "(objectCategory=person)" in search_filter
        assert "(objectClass=group)" in search_filter
        assert "(name=Ops \\28EMEA\\29)" in search_filter
        assert conn.search.call_args[1]["searchBase"] == "DC=corp,DC=local"

    def test_group_kind(self, directory, conn):
        """objectClass group maps to ObjectKind.GROUP"""
        conn.search.return_value = [
            make_entry(name="G1", sAMAccountName="G1", objectClass=["top", "group"])
        ]

        obj = directory.lookup_object_by_account_name("corp.local", "G1")

        assert obj.kind == ObjectKind.GROUP
        assert obj.sid is None
        assert "(sAMAccountName=G1)" in conn.search.call_args[1]["searchFilter"]

    def test_not_found_returns_none(self, directory, conn):
        """No entries means None, not an exception"""
        conn.search.return_value = []

        assert directory.lookup_object("corp.local", "ghost") is None

    def test_prefers_exact_account_name(self, directory, conn):
        """With several matches the exact sAMAccountName wins"""
        conn.search.return_value = [
            make_entry(name="admin", sAMAccountName="admin2", objectClass="user"),
            make_entry(name="Administrator", sAMAccountName="admin", objectClass="user"),
        ]

        obj = directory.lookup_object("corp.local", "admin")

        assert obj.account_name == "admin"

    def test_search_failure_raises_lookup_not_found(self, directory, conn):
        """impacket errors become LookupNotFound"""
        conn.search.side_effect = Exception("insufficientAccessRights")

        with pytest.raises(LookupNotFound):
            directory.lookup_object("corp.local", "alice")


# ============================================================================
# Test: Bulk group listing
# ============================================================================


class TestListGroupsWithMembers:
    """Tests for list_groups_with_members"""

    def test_paged_listing(self, directory, conn):
        """Should page through groups and return their member DNs"""
        conn.search.return_value = [
            make_entry(
                name="EMEA-Admins",
                sAMAccountName="EMEA-Admins",
                distinguishedName="CN=EMEA-Admins,DC=corp,DC=local",
                objectClass="group",
                member=["CN=S-1-5-21-1-2-3-1105,CN=ForeignSecurityPrincipals,DC=corp,DC=local"],
            )
        ]

        listing = directory.list_groups_with_members("corp.local")

        assert len(listing) == 1
        group, members = listing[0]
        assert group.name == "EMEA-Admins"
        assert members == ["CN=S-1-5-21-1-2-3-1105,CN=ForeignSecurityPrincipals,DC=corp,DC=local"]
        kwargs = conn.search.call_args[1]
        assert kwargs["searchFilter"] == "(&(objectClass=group)(member=*))"
        assert "member" in kwargs["attributes"]
        assert kwargs["searchControls"] is not None

    def test_ranged_member_retrieval(self, directory, conn):
        """Should follow member;range= values until the final range"""
        group_dn = "CN=Big,DC=corp,DC=local"
        conn.search.side_effect = [
            [
                make_entry(
                    name="Big",
                    sAMAccountName="Big",
                    distinguishedName=group_dn,
                    objectClass="group",
                    **{"member;range=0-1": ["CN=u1,DC=corp,DC=local", "CN=u2,DC=corp,DC=local"]},
                )
            ],
            [make_entry(**{"member;range=2-*": ["CN=u3,DC=corp,DC=local"]})],
        ]

        listing = directory.list_groups_with_members("corp.local")

        _, members = listing[0]
        assert members == ["CN=u1,DC=corp,DC=local", "CN=u2,DC=corp,DC=local", "CN=u3,DC=corp,DC=local"]
        follow_up = conn.search.call_args_list[1][1]
        assert follow_up["searchBase"] == group_dn
        assert follow_up["attributes"] == ["member;range=2-*"]

    def test_directory_root(self, directory):
        """directory_root is the domain's base DN"""
        assert directory.directory_root("emea.corp.local") == "DC=emea,DC=corp,DC=local"
