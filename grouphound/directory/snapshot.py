# Offline directory gateway.
#
# Serves lookups from a directory snapshot instead of a live domain
# controller. Used by --offline runs and by the test suite.
#
# Snapshot JSON format:
#
#     {
#       "domains": {
#         "corp.local": {
#           "objects": [
#             {"name": "alice", "kind": "User", "sid": "S-1-5-21-1-1-1-1105",
#              "member_of": ["CN=Helpdesk,DC=corp,DC=local"]},
#             {"name": "Helpdesk", "kind": "Group", "member_of": []}
#           ]
#         }
#       }
#     }
#
# Objects without a distinguished_name get CN=<name>,<domain root>. A group's
# member list is built from the member_of entries of objects in its own domain
# plus any explicit "members" (used for ForeignSecurityPrincipals DNs).

import dataclasses
import json
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from ..exceptions import ConfigurationError
from ..models import DirectoryObject
from ..utils.helpers import domain_to_base_dn
from ..utils.logging import debug
from .base import DirectoryGateway, GroupListing


class SnapshotDirectory(DirectoryGateway):
    """
    In-memory directory built from DirectoryObjects.

    Args:
        objects: Mapping of domain -> objects living in that domain
        extra_members: Optional mapping of group DN -> additional member DNs
    """

    def __init__(
        self,
        objects: Dict[str, Iterable[DirectoryObject]],
        extra_members: Optional[Dict[str, Iterable[str]]] = None,
    ):
        self._objects: Dict[str, List[DirectoryObject]] = {}
        for domain, domain_objects in objects.items():
            root = domain_to_base_dn(domain)
            self._objects[domain.lower()] = [
                obj if obj.distinguished_name else dataclasses.replace(obj, distinguished_name=f"CN={obj.name},{root}")
                for obj in domain_objects
            ]
        self._extra_members = {dn.lower(): list(members) for dn, members in (extra_members or {}).items()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SnapshotDirectory":
        """
        Build a snapshot from its JSON-compatible dict form.

        Raises:
            ConfigurationError: If the data does not have the snapshot layout
        """
        objects: Dict[str, List[DirectoryObject]] = {}
        extra_members: Dict[str, List[str]] = {}
        try:
            for domain, domain_data in data.get("domains", {}).items():
                root = domain_to_base_dn(domain)
                objects[domain] = []
                for index, entry in enumerate(domain_data.get("objects", [])):
                    if not isinstance(entry, dict) or not entry.get("name"):
                        raise ConfigurationError(f"Snapshot object #{index} in {domain} has no name")
                    obj = DirectoryObject.from_dict(entry, domain)
                    objects[domain].append(obj)
                    if entry.get("members"):
                        dn = obj.distinguished_name or f"CN={obj.name},{root}"
                        extra_members[dn] = list(entry["members"])
        except (AttributeError, KeyError, TypeError) as e:
            raise ConfigurationError(f"Malformed directory snapshot: {e!r}") from e
        return cls(objects, extra_members)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "SnapshotDirectory":
        """
        Load a snapshot JSON file.

        Raises:
            ConfigurationError: If the file is missing or not valid JSON
        """
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Could not load directory snapshot {path}: {e}") from e
        debug(f"Snapshot: Loaded {path}")
        return cls.from_dict(data)

    @property
    def domains(self) -> List[str]:
        return list(self._objects)

    def _domain_objects(self, domain: str) -> List[DirectoryObject]:
        return self._objects.get(domain.lower(), [])

    def validate_domain(self, domain: str) -> None:
        if domain.lower() not in self._objects:
            raise ConfigurationError(f"Domain {domain} is not present in the directory snapshot")

    def lookup_object(self, domain: str, name_or_alias: str) -> Optional[DirectoryObject]:
        wanted = name_or_alias.lower()
        for obj in self._domain_objects(domain):
            if wanted in obj.aliases:
                return obj
        return None

    def lookup_object_by_account_name(self, domain: str, account_name: str) -> Optional[DirectoryObject]:
        wanted = account_name.lower()
        for obj in self._domain_objects(domain):
            if obj.account_name.lower() == wanted:
                return obj
        return None

    def list_groups_with_members(self, domain: str) -> GroupListing:
        domain_objects = self._domain_objects(domain)
        listing: GroupListing = []
        for group in domain_objects:
            if not group.is_group:
                continue
            group_refs = {group.distinguished_name.lower(), group.name.lower()}
            members = [
                obj.distinguished_name
                for obj in domain_objects
                if any(ref.lower() in group_refs for ref in obj.member_of)
            ]
            members.extend(self._extra_members.get(group.distinguished_name.lower(), []))
            if members:
                listing.append((group, members))
        return listing
