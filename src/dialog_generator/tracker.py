"""Per-run registry of materialized artifacts, bucketed by file extension."""

from __future__ import annotations

import os
import re
from pathlib import Path, PurePath

from dialog_generator.models import FileRef

LOCALE_EXTENSIONS = ("lg", "lu", "qna")

_LOCALE_SEGMENT_RE = re.compile(r"\.[^.]+(\.[^.]+)$")


def _extension(name: str) -> str:
    return PurePath(name).suffix[1:]


class FileTracker:
    """Tracks which artifacts were written in the current run.

    Buckets are keyed by extension without the dot (``dialog``, ``lg``...).
    Buckets are created lazily; locale-specific ones are cleared between
    locales with ``reset``.
    """

    def __init__(self) -> None:
        self._buckets: dict[str, list[FileRef]] = {}

    def bucket(self, extension: str) -> list[FileRef]:
        return self._buckets.setdefault(extension.lstrip("."), [])

    def __getitem__(self, extension: str) -> list[FileRef]:
        return self.bucket(extension)

    def record_if_new(self, full_path: Path, out_dir: Path, prefix: str) -> FileRef | None:
        """Build a reference for ``full_path`` unless its name is already tracked.

        The reference is not registered; callers ``add`` it once the artifact
        is actually written.
        """
        full_name = Path(full_path).name
        name = Path(full_name).stem
        if any(ref.name == name for ref in self.bucket(_extension(full_name))):
            return None
        short_name = name[len(prefix) + 1 :] if prefix and name.startswith(f"{prefix}-") else name
        return FileRef(
            name=name,
            short_name=short_name.split(".", 1)[0],
            fallback_name=_LOCALE_SEGMENT_RE.sub(r"\1", full_name) if full_name.count(".") > 1 else full_name,
            full_name=full_name,
            relative=Path(os.path.relpath(full_path, out_dir)).as_posix(),
        )

    def lookup_by_filename(self, name: str) -> FileRef | None:
        """Find a tracked reference by its on-disk file name."""
        return next((ref for ref in self.bucket(_extension(name)) if ref.full_name == name), None)

    def add(self, ref: FileRef) -> None:
        self.bucket(_extension(ref.full_name)).append(ref)

    def reset(self, extensions: tuple[str, ...] = LOCALE_EXTENSIONS) -> None:
        """Forget locale-specific artifacts before the next locale is generated."""
        for extension in extensions:
            self._buckets[extension] = []
