# src/ratesync/application/access.py
"""
Access Checks - Administrator Capability

Administrative entry points take the caller's handle as their first argument
and compare it with the administrator handle the component was built with.

Files that USE this module:
- ratesync.application.registry (register, deregister)
- ratesync.application.sender (fund, withdraw)
- ratesync.application.receiver (rotate_trust)
"""
import logging

from ratesync.domain.errors import AuthorizationError

logger = logging.getLogger(__name__)


def same_handle(a, b) -> bool:
    """Compare two handles case-insensitively; non-strings never match."""
    if not isinstance(a, str) or not isinstance(b, str):
        return False
    return a.strip().lower() == b.strip().lower()


def require_admin(caller: str, admin: str, action: str) -> None:
    """
    Raise AuthorizationError unless ``caller`` is the administrator.

    Args:
        caller: Handle of the caller
        admin: Administrator handle
        action: Operation name, for the log and the error message
    """
    if not same_handle(caller, admin):
        logger.warning("Rejected %s by non-admin caller %r", action, caller)
        raise AuthorizationError(f"{action} requires the administrator", reason="not_admin")
