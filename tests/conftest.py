"""
Pytest configuration and shared fixtures for GroupHound tests.

Directory fixtures are SnapshotDirectory instances built from the same dict
format --offline snapshots use.
"""

import json
import os

import pytest

from grouphound.directory import SnapshotDirectory
from grouphound.utils.logging import set_verbosity

CORP_SID = "S-1-5-21-1000-2000-3000"
EMEA_SID = "S-1-5-21-4000-5000-6000"


def make_directory(domains):
    """
    Build a SnapshotDirectory from {domain: [object dicts]}.

    Example:
        make_directory({"corp.local": [{"name": "alice", "member_of": ["G1"]}]})
    """
    return SnapshotDirectory.from_dict(
        {"domains": {domain: {"objects": objects} for domain, objects in domains.items()}}
    )


def fsp_dn(sid, root):
    return f"CN={sid},CN=ForeignSecurityPrincipals,{root}"


@pytest.fixture(autouse=True)
def reset_verbosity(monkeypatch):
    """Keep verbosity and GROUPHOUND_DEBUG from leaking between tests."""
    monkeypatch.delenv("GROUPHOUND_DEBUG", raising=False)
    set_verbosity(False, False)
    yield
    set_verbosity(False, False)
    os.environ.pop("GROUPHOUND_DEBUG", None)


@pytest.fixture
def directory_factory():
    """Expose make_directory to tests that build their own layouts."""
    return make_directory


@pytest.fixture
def alice_directory():
    """alice in corp.local with one direct group G1 that has no memberships."""
    return make_directory(
        {
            "corp.local": [
                {"name": "alice", "kind": "User", "sid": f"{CORP_SID}-1105", "member_of": ["G1"]},
                {"name": "G1", "kind": "Group", "sid": f"{CORP_SID}-2001"},
            ]
        }
    )


@pytest.fixture
def chain_directory():
    """alice -> G1 -> G2 -> G3, a three-level nesting chain."""
    return make_directory(
        {
            "corp.local": [
                {"name": "alice", "kind": "User", "sid": f"{CORP_SID}-1105", "member_of": ["G1"]},
                {"name": "G1", "kind": "Group", "sid": f"{CORP_SID}-2001", "member_of": ["G2"]},
                {"name": "G2", "kind": "Group", "sid": f"{CORP_SID}-2002", "member_of": ["G3"]},
                {"name": "G3", "kind": "Group", "sid": f"{CORP_SID}-2003"},
            ]
        }
    )


@pytest.fixture
def cyclic_directory():
    """u -> A -> B -> C -> A, a membership cycle."""
    return make_directory(
        {
            "corp.local": [
                {"name": "u", "kind": "User", "sid": f"{CORP_SID}-1200", "member_of": ["A"]},
                {"name": "A", "kind": "Group", "sid": f"{CORP_SID}-3001", "member_of": ["B"]},
                {"name": "B", "kind": "Group", "sid": f"{CORP_SID}-3002", "member_of": ["C"]},
                {"name": "C", "kind": "Group", "sid": f"{CORP_SID}-3003", "member_of": ["A"]},
            ]
        }
    )


@pytest.fixture
def fsp_directory():
    """
    Two domains with foreign memberships.

    corp.local: alice -> CorpStaff; bob has no memberships anywhere; carol
    has no SID. emea.local: EMEA-Admins holds alice as an FSP, EMEA-Readers
    holds CorpStaff as an FSP, EMEA-Local only has a local member.
    """
    emea_root = "DC=emea,DC=local"
    return make_directory(
        {
            "corp.local": [
                {"name": "alice", "kind": "User", "sid": f"{CORP_SID}-1105", "member_of": ["CorpStaff"]},
                {"name": "bob", "kind": "User", "sid": f"{CORP_SID}-1106"},
                {"name": "carol", "kind": "User", "member_of": ["CorpStaff"]},
                {"name": "CorpStaff", "kind": "Group", "sid": f"{CORP_SID}-2100"},
            ],
            "emea.local": [
                {"name": "erik", "kind": "User", "sid": f"{EMEA_SID}-1301", "member_of": ["EMEA-Local"]},
                {
                    "name": "EMEA-Admins",
                    "kind": "Group",
                    "sid": f"{EMEA_SID}-512",
                    "members": [fsp_dn(f"{CORP_SID}-1105", emea_root)],
                },
                {
                    "name": "EMEA-Readers",
                    "kind": "Group",
                    "sid": f"{EMEA_SID}-1500",
                    "members": [fsp_dn(f"{CORP_SID}-2100", emea_root)],
                },
                {"name": "EMEA-Local", "kind": "Group", "sid": f"{EMEA_SID}-1600"},
            ],
        }
    )


@pytest.fixture
def snapshot_file(tmp_path):
    """Write a small two-domain snapshot to disk and return its path."""
    data = {
        "domains": {
            "corp.local": {
                "objects": [
                    {"name": "alice", "kind": "User", "sid": f"{CORP_SID}-1105", "member_of": ["G1"]},
                    {"name": "G1", "kind": "Group", "sid": f"{CORP_SID}-2001"},
                ]
            },
            "emea.local": {
                "objects": [
                    {
                        "name": "EMEA-Admins",
                        "kind": "Group",
                        "sid": f"{EMEA_SID}-512",
                        "members": [fsp_dn(f"{CORP_SID}-1105", "DC=emea,DC=local")],
                    }
                ]
            },
        }
    }
    path = tmp_path / "snapshot.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return path
