"""Deferred deletion of produced artifacts.

Every artifact is deleted a fixed grace period after its batch finishes,
whether or not anyone downloaded it. Deletion does not coordinate with
in-flight downloads: an open file survives the unlink, and later requests
for it answer not-found.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_GRACE_SECONDS = 300.0


@dataclass(eq=False)
class ScheduledDeletion:
    """Handle for one pending deletion."""

    path: Path
    due_at: datetime
    task: asyncio.Task[None] | None = field(default=None, repr=False)

    @property
    def done(self) -> bool:
        return self.task is not None and self.task.done()

    def cancel(self) -> bool:
        """Cancel the timer. Returns False if it already fired."""
        if self.task is None or self.task.done():
            return False
        return self.task.cancel()


class ResourceReaper:
    """Schedules and performs fire-and-forget file deletions.

    Args:
        default_delay: Grace period used when schedule_delete() gets none.
        root: Output root. Empty per-artifact directories below it are
            removed along with their file.
    """

    def __init__(
        self,
        default_delay: float = DEFAULT_GRACE_SECONDS,
        root: Path | None = None,
    ) -> None:
        self.default_delay = default_delay
        self._root = root.resolve() if root is not None else None
        self._pending: set[ScheduledDeletion] = set()

    @property
    def pending(self) -> list[ScheduledDeletion]:
        return [d for d in self._pending if not d.done]

    def schedule_delete(self, path: Path, after: float | None = None) -> ScheduledDeletion:
        """Delete `path` once `after` seconds have elapsed.

        Must be called from a running event loop.
        """
        delay = self.default_delay if after is None else max(after, 0.0)
        deletion = ScheduledDeletion(
            path=path,
            due_at=datetime.now(UTC) + timedelta(seconds=delay),
        )
        task = asyncio.get_running_loop().create_task(
            self._delete_later(deletion.path, delay),
            name=f"reap:{path.name}",
        )
        deletion.task = task
        self._pending.add(deletion)
        task.add_done_callback(lambda _t: self._pending.discard(deletion))

        logger.debug("Scheduled deletion of %s in %.1fs", path.name, delay)
        return deletion

    async def _delete_later(self, path: Path, delay: float) -> None:
        await asyncio.sleep(delay)
        self.delete_now(path)

    def delete_now(self, path: Path) -> bool:
        """Delete `path` immediately.

        A missing file is expected (it may have been removed by hand or by
        an earlier purge) and only logs a warning.

        Returns:
            True if a file was deleted.
        """
        try:
            path.unlink()
        except FileNotFoundError:
            logger.warning("Artifact %s already gone at deletion time", path)
            self._prune_parent(path)
            return False
        except OSError as e:
            logger.error("Error cleaning up file %s: %s", path, e)
            return False

        logger.info("Deleted artifact %s", path.name)
        self._prune_parent(path)
        return True

    def _prune_parent(self, path: Path) -> None:
        if self._root is None:
            return
        parent = path.parent.resolve()
        if parent == self._root or self._root not in parent.parents:
            return
        try:
            parent.rmdir()
        except OSError:
            # still holds other files, or already removed
            return

    async def shutdown(self, purge: bool = False) -> int:
        """Cancel outstanding timers.

        Args:
            purge: Also delete the files whose timers were cancelled.

        Returns:
            Number of deletions that were still pending.
        """
        pending = self.pending
        for deletion in pending:
            deletion.cancel()
        tasks = [d.task for d in pending if d.task is not None]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        if purge:
            for deletion in pending:
                self.delete_now(deletion.path)

        self._pending.clear()
        logger.info(
            "Reaper stopped (%d pending deletions%s)",
            len(pending),
            ", purged" if purge else "",
        )
        return len(pending)
