"""azsession - Azure subscription session helper

Philosophy:
- Ruthless simplicity
- Delegate to az CLI (no credential storage)
- One explicit session object, no hidden global state
- Fail fast on login, degrade gracefully on lookups

The azsession CLI logs in through the Azure CLI, tracks the active
subscription, shows it in an interactive prompt, and queries the
Azure billing API.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
