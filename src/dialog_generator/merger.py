"""Merge a freshly generated asset tree into a previously generated one."""

from __future__ import annotations

import re
import shutil
from pathlib import Path

from dialog_generator.hashing import extract_hash, is_unchanged
from dialog_generator.models import Feedback, FeedbackType

LOCALE_RE = re.compile(r"^[a-z]{2,3}-[a-z0-9]{2,4}$", re.IGNORECASE)


def _files(root: Path) -> dict[str, Path]:
    return {path.relative_to(root).as_posix(): path for path in sorted(root.rglob("*")) if path.is_file()}


def _locale_of(relative: str) -> str | None:
    """Return the locale a file belongs to from its folder or dotted name, if any."""
    parts = relative.split("/")
    candidates = [*parts[:-1], *parts[-1].split(".")[1:-1]]
    return next((part for part in candidates if LOCALE_RE.match(part)), None)


def merge_assets(
    prefix: str,
    old_dir: Path,
    new_dir: Path,
    merged_dir: Path,
    locales: list[str],
    feedback: Feedback,
) -> None:
    """Reconcile a new tree with the old one, never overwriting user edits.

    A destination file is replaced only while it still matches the
    fingerprint it was generated with (the ``<prefix>.json`` schema is always
    replaced). Generated files that disappeared from the new tree are removed
    when unchanged; edited ones are kept with a warning.
    """
    old_dir = Path(old_dir)
    new_dir = Path(new_dir)
    merged_dir = Path(merged_dir)
    old_files = _files(old_dir) if old_dir.exists() else {}
    new_files = _files(new_dir)
    schema_file = f"{prefix}.json"

    for relative, source in new_files.items():
        old = old_files.get(relative)
        target = merged_dir / relative
        if old is None:
            feedback(FeedbackType.info, f"Adding {target}")
        elif old.read_bytes() == source.read_bytes():
            if old != target:
                target.parent.mkdir(parents=True, exist_ok=True)
                shutil.copyfile(old, target)
            continue
        elif relative == schema_file or is_unchanged(old):
            feedback(FeedbackType.info, f"Updating {target}")
        else:
            feedback(FeedbackType.warning, f"Keeping modified {target}")
            if old != target:
                target.parent.mkdir(parents=True, exist_ok=True)
                shutil.copyfile(old, target)
            continue
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(source, target)

    for relative, old in old_files.items():
        if relative in new_files:
            continue
        target = merged_dir / relative
        locale = _locale_of(relative)
        if locale is not None and locale not in locales:
            feedback(FeedbackType.debug, f"Keeping {old} for locale {locale}")
        elif extract_hash(old) is not None and is_unchanged(old):
            feedback(FeedbackType.info, f"Deleting {old}")
            if old == target:
                old.unlink()
            continue
        else:
            feedback(FeedbackType.warning, f"Keeping {old} which is not part of the new generation")
        if old != target:
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(old, target)
