"""
Process resource limits for long-running batch jobs.

Limits are only ever raised. A request below the current soft limit is a no-op,
so a generous limit configured by the host is never tightened.
"""
import resource
from typing import Optional

from filevault.core.logging_config import log_debug, log_warning

_MB = 1024 * 1024


def _raise_soft_limit(limit: int, target: Optional[int]) -> bool:
    """
    Raise the soft value of ``limit`` towards ``target``.

    Args:
        limit: ``resource.RLIMIT_*`` constant
        target: Desired soft limit, or None for the hard limit

    Returns:
        True if the soft limit was changed
    """
    soft, hard = resource.getrlimit(limit)

    if target is None:
        target = hard

    if hard != resource.RLIM_INFINITY and (target == resource.RLIM_INFINITY or target > hard):
        target = hard

    if soft == resource.RLIM_INFINITY:
        return False
    if target != resource.RLIM_INFINITY and target <= soft:
        return False

    try:
        resource.setrlimit(limit, (target, hard))
    except (ValueError, OSError) as e:
        log_warning(f"Could not raise resource limit: {e}", limit=limit, target=target)
        return False

    log_debug("Raised resource limit", limit=limit, soft=soft, target=target)
    return True


def increase_time_limit_to(seconds: Optional[int] = None) -> bool:
    """Raise the CPU time limit to ``seconds`` (or the hard limit)."""
    return _raise_soft_limit(resource.RLIMIT_CPU, seconds)


def increase_memory_limit_to(megabytes: Optional[int] = None) -> bool:
    """Raise the address space limit to ``megabytes`` (or the hard limit)."""
    target = megabytes * _MB if megabytes is not None else None
    return _raise_soft_limit(resource.RLIMIT_AS, target)
