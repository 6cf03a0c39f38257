"""Sweep of sessions whose progress stream never attached.

A client that submits a batch but never opens its progress stream would
otherwise leave the session, and every event the batch emits, in memory
for the life of the process.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from songfetch.config import SongfetchConfig
    from songfetch.sessions.registry import SessionRegistry

logger = logging.getLogger(__name__)


async def session_sweep_task(
    registry: "SessionRegistry",
    config: "SongfetchConfig",
) -> int:
    """Drop sessions older than the claim timeout that nobody attached to.

    Args:
        registry: Registry to sweep.
        config: Application configuration with the claim timeout.

    Returns:
        Number of sessions dropped.
    """
    expired = registry.expire_unclaimed(config.session_claim_timeout_seconds)
    if expired:
        logger.info("Session sweep dropped %d unclaimed sessions", expired)
    return expired
