# SID utilities for GroupHound
#
# Conversion between binary objectSid values and their string form, and
# construction of the Foreign Security Principal DN a trusting domain uses
# to reference a principal from another domain.

import re
import struct
from typing import Optional

from .logging import debug

FSP_CONTAINER = "CN=ForeignSecurityPrincipals"

_SID_PATTERN = re.compile(r"^S-1-\d+(-\d+)+$")


def is_sid(value: str) -> bool:
    """Check if a string looks like a Windows SID."""
    if not value:
        return False
    return bool(_SID_PATTERN.match(value.strip()))


def sid_to_binary(sid_string: str) -> Optional[bytes]:
    """
    Convert a SID string (S-1-5-21-...) to binary format for LDAP queries.

    Args:
        sid_string: String representation of SID

    Returns:
        Binary representation of SID, None if invalid
    """
    try:
        if not sid_string.startswith("S-"):
            return None

        parts = sid_string[2:].split("-")
        if len(parts) < 3:
            return None

        revision = int(parts[0])
        authority = int(parts[1])
        subauthorities = [int(x) for x in parts[2:]]

        # Revision (1 byte) + SubAuthorityCount (1 byte) + Authority (6 bytes) + SubAuthorities (4 bytes each)
        binary_sid = struct.pack("B", revision)
        binary_sid += struct.pack("B", len(subauthorities))
        binary_sid += struct.pack(">Q", authority)[2:]

        for subauth in subauthorities:
            binary_sid += struct.pack("<I", subauth)

        return binary_sid

    except (ValueError, struct.error) as e:
        debug(f"Error converting SID {sid_string} to binary: {e}")
        return None


def binary_to_sid(binary_sid: bytes) -> Optional[str]:
    """
    Convert a binary SID (from LDAP objectSid attribute) to string format.

    Args:
        binary_sid: Binary representation of SID from LDAP

    Returns:
        String representation like "S-1-5-21-...", None if invalid
    """
    try:
        if not binary_sid or len(binary_sid) < 8:
            return None

        revision = struct.unpack("B", binary_sid[0:1])[0]
        subauth_count = struct.unpack("B", binary_sid[1:2])[0]

        # Authority is 6 bytes, big-endian
        authority = struct.unpack(">Q", b"\x00\x00" + binary_sid[2:8])[0]

        sid_parts = [f"S-{revision}-{authority}"]

        # Sub-authorities are 4 bytes each, little-endian
        offset = 8
        for _ in range(subauth_count):
            if offset + 4 > len(binary_sid):
                debug("Binary SID too short for claimed sub-authority count")
                return None
            subauth = struct.unpack("<I", binary_sid[offset : offset + 4])[0]
            sid_parts.append(str(subauth))
            offset += 4

        return "-".join(sid_parts)

    except (ValueError, struct.error) as e:
        debug(f"Error converting binary SID to string: {e}")
        return None


def fsp_reference(sid: str, directory_root: str) -> str:
    """
    Build the member DN under which a domain stores a foreign principal.

    A principal from domain A nested into a group of domain B shows up in
    that group's member list as CN=<SID>,CN=ForeignSecurityPrincipals,<B root>.

    Args:
        sid: SID of the foreign principal
        directory_root: Base DN of the domain holding the group

    Returns:
        Member DN string
    """
    return f"CN={sid},{FSP_CONTAINER},{directory_root}"
