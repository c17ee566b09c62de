# Directory object model.
#
# DirectoryObject is the read-only view of a user or group returned by a
# Directory Gateway. The resolver never mutates these objects.

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Set, Tuple

from ..exceptions import AttributeUnavailable


class ObjectKind(str, Enum):
    """Kind of directory principal that can take part in memberships."""

    USER = "User"
    GROUP = "Group"


@dataclass(frozen=True)
class DirectoryObject:
    """
    A user or group as seen by the directory.

    Attributes:
        name: Display name (AD "name"/cn), used as the identity in edges
        account_name: sAMAccountName, used for recursive lookups
        kind: User or Group
        domain: FQDN of the domain the object lives in
        distinguished_name: Full DN of the object
        principal_name: userPrincipalName (users only, optional)
        display_name: Alternate display name (displayName, optional)
        sid: objectSid in string form, None when not readable
        member_of: Ordered identifiers (DNs) of groups the object is directly in
    """

    name: str
    account_name: str
    kind: ObjectKind
    domain: str
    distinguished_name: str = ""
    principal_name: Optional[str] = None
    display_name: Optional[str] = None
    sid: Optional[str] = None
    member_of: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_group(self) -> bool:
        return self.kind == ObjectKind.GROUP

    @property
    def aliases(self) -> Set[str]:
        """All name forms this object can be found by (lowercased)."""
        forms = {self.name, self.account_name, self.principal_name, self.display_name, self.distinguished_name}
        return {f.lower() for f in forms if f}

    def require_sid(self) -> str:
        """Return the SID or raise AttributeUnavailable."""
        if not self.sid:
            raise AttributeUnavailable(f"{self.domain}\\{self.account_name} has no objectSid")
        return self.sid

    @classmethod
    def from_dict(cls, data: Dict[str, Any], domain: str) -> "DirectoryObject":
        """
        Build a DirectoryObject from a snapshot entry.

        Only "name" is required; account_name falls back to name and kind
        defaults to User.
        """
        kind_raw = str(data.get("kind", ObjectKind.USER.value)).strip().lower()
        kind = ObjectKind.GROUP if kind_raw == "group" else ObjectKind.USER
        name = data["name"]
        return cls(
            name=name,
            account_name=data.get("account_name") or name,
            kind=kind,
            domain=domain,
            distinguished_name=data.get("distinguished_name", ""),
            principal_name=data.get("principal_name"),
            display_name=data.get("display_name"),
            sid=data.get("sid"),
            member_of=tuple(data.get("member_of", ())),
        )
