"""GroupHound: Active Directory group membership resolver."""

__version__ = "1.0.0"
