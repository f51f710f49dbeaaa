"""
validatornet/process.py

Normalizes a process-manager description of the local node into a status
string. Only "stopped" versus anything else matters to callers.
"""

from typing import Any, Dict, Optional

STOPPED = "stopped"


def status_from_description(description: Optional[Dict[str, Any]]) -> Optional[str]:
    """
    Extract the status from a pm2-style description.

    Accepts ``{"pm2_env": {"status": "online"}}`` or ``{"status": "online"}``.

    Returns:
        Lowercase status, or None when the description carries none
    """
    if not description:
        return None
    env = description.get("pm2_env")
    status = env.get("status") if isinstance(env, dict) else None
    if status is None:
        status = description.get("status")
    if not status:
        return None
    return str(status).strip().lower()


def is_running(description: Optional[Dict[str, Any]]) -> bool:
    """True when the description reports a status other than stopped."""
    status = status_from_description(description)
    return status is not None and status != STOPPED
