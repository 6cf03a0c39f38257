"""Filesystem layout and filename safety for produced artifacts.

Every converted track lives in its own token-named directory under the
configured output root, so two batches producing the same title never
collide and zip entries keep a readable basename.
"""

import logging
import shutil
from pathlib import Path

from songfetch.config import SongfetchConfig
from songfetch.services.identity import new_id

logger = logging.getLogger(__name__)

# Characters that break at least one target filesystem or shell.
# The fullwidth variants showed up in real titles and confuse some players.
RESERVED_CHARS = (
    "<", ">", ":", '"', "/", "\\", "|", "?", "*", ";", "&", "`", "！", "：", "？",
)
MAX_FILENAME_CHARS = 200


def safe_filename(name: str) -> str:
    """Make a title safe for use as a filename component.

    Replaces each reserved character with an underscore and truncates to
    MAX_FILENAME_CHARS characters. Idempotent.
    """
    for c in RESERVED_CHARS:
        name = name.replace(c, "_")
    return name[:MAX_FILENAME_CHARS]


def display_filename(extractor: str, title: str, ext: str) -> str:
    """User-facing "<extractor> - <title>.<ext>" label (unsanitized)."""
    return f"{extractor} - {title}.{ext}"


def audio_filename(extractor: str, title: str, ext: str) -> str:
    """Filesystem-safe counterpart of display_filename()."""
    return f"{safe_filename(extractor)} - {safe_filename(title)}.{ext}"


class FileService:
    """Owns the output root where artifacts are materialized."""

    def __init__(self, config: SongfetchConfig) -> None:
        self.config = config
        self._root = config.output_path
        self._root.mkdir(parents=True, exist_ok=True)

    @property
    def root(self) -> Path:
        return self._root

    def allocate_work_dir(self) -> Path:
        """Create a fresh, uniquely named directory for one artifact."""
        work_dir = self._root / new_id()
        work_dir.mkdir(parents=True, exist_ok=False)
        logger.debug("Allocated work dir %s", work_dir)
        return work_dir

    def bundle_path(self) -> Path:
        """Unique on-disk path for a zip bundle."""
        return self._root / f"songs_{new_id()}.zip"

    def is_within_root(self, path: Path) -> bool:
        try:
            path.resolve().relative_to(self._root)
        except ValueError:
            return False
        return True

    def discard_work_dir(self, work_dir: Path) -> None:
        """Remove a work dir and anything a failed conversion left in it."""
        if not self.is_within_root(work_dir) or work_dir == self._root:
            logger.warning("Refusing to discard %s outside output root", work_dir)
            return
        shutil.rmtree(work_dir, ignore_errors=True)
