"""Utility modules for GroupHound.

Modules:
    cache_manager: Run-scoped bulk group listing cache
    console: Rich console output
    dns: Domain controller discovery
    helpers: General helper functions
    ldap: LDAP connection utilities
    logging: Logging configuration
    sid: SID conversion and FSP reference helpers
"""
