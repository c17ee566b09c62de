# Directory Gateway interface.
#
# The resolver talks to the directory only through this interface. Lookups
# return None when an object simply does not exist in a domain and raise
# LookupNotFound when the directory could not answer (access denied, broken
# reference, transport error).

from abc import ABC, abstractmethod
from typing import List, Optional, Tuple

from ..models import DirectoryObject
from ..utils.helpers import domain_to_base_dn

# (group, raw member DNs) as returned by list_groups_with_members
GroupListing = List[Tuple[DirectoryObject, List[str]]]


class DirectoryGateway(ABC):
    """Read-only access to users and groups across one or more domains."""

    @abstractmethod
    def validate_domain(self, domain: str) -> None:
        """
        Check that the domain can be queried.

        Raises:
            ConfigurationError: If the domain is invalid or unreachable
        """

    @abstractmethod
    def lookup_object(self, domain: str, name_or_alias: str) -> Optional[DirectoryObject]:
        """
        Find a user or group by display name, UPN, account name,
        alternate display name or distinguished name.

        Raises:
            LookupNotFound: If the directory could not answer
        """

    @abstractmethod
    def lookup_object_by_account_name(self, domain: str, account_name: str) -> Optional[DirectoryObject]:
        """
        Find a user or group by sAMAccountName.

        Raises:
            LookupNotFound: If the directory could not answer
        """

    @abstractmethod
    def list_groups_with_members(self, domain: str) -> GroupListing:
        """Return every group of the domain that has members, with its member DNs."""

    def directory_root(self, domain: str) -> str:
        """Base DN of the domain."""
        return domain_to_base_dn(domain)

    def close(self) -> None:
        """Release any connections held by the gateway."""
