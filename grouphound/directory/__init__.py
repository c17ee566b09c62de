# Directory gateways.
#
# The resolver depends only on DirectoryGateway; LdapDirectory talks to
# live domain controllers, SnapshotDirectory serves an offline snapshot.

from .base import DirectoryGateway, GroupListing
from .ldap_directory import LdapDirectory
from .snapshot import SnapshotDirectory

__all__ = [
    "DirectoryGateway",
    "GroupListing",
    "LdapDirectory",
    "SnapshotDirectory",
]
