"""Zip bundling of converted files."""

from __future__ import annotations

import asyncio
import logging
import zipfile
from pathlib import Path
from typing import Protocol, Sequence

logger = logging.getLogger(__name__)


class BundlingError(Exception):
    """Raised when a bundle cannot be produced."""

    pass


class Archiver(Protocol):
    """Anything able to pack N files into one bundle file."""

    async def bundle(self, paths: Sequence[Path], dest: Path) -> Path: ...


def _unique_arcname(name: str, used: set[str]) -> str:
    if name not in used:
        return name
    stem, dot, suffix = name.rpartition(".")
    if not dot:
        stem, suffix = name, ""
    n = 2
    while True:
        candidate = f"{stem} ({n}).{suffix}" if dot else f"{stem} ({n})"
        if candidate not in used:
            return candidate
        n += 1


class ZipArchiver:
    """Writes a deflated zip with one entry per input file (by basename)."""

    async def bundle(self, paths: Sequence[Path], dest: Path) -> Path:
        """Pack `paths` into `dest`.

        Raises:
            BundlingError: If any input is unreadable or the zip cannot be written.
                No partial bundle is left behind.
        """
        if not paths:
            raise BundlingError("nothing to bundle")
        return await asyncio.to_thread(self._write, list(paths), dest)

    def _write(self, paths: list[Path], dest: Path) -> Path:
        used: set[str] = set()
        try:
            with zipfile.ZipFile(dest, "w", compression=zipfile.ZIP_DEFLATED) as zf:
                for path in paths:
                    arcname = _unique_arcname(path.name, used)
                    used.add(arcname)
                    zf.write(path, arcname=arcname)
        except (OSError, zipfile.BadZipFile) as e:
            dest.unlink(missing_ok=True)
            raise BundlingError(f"error creating ZIP file: {e}") from e

        logger.info("Bundled %d files into %s", len(paths), dest.name)
        return dest
