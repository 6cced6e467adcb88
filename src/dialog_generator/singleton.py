"""Collapse cross-referencing ``.dialog`` artifacts into one root dialog."""

from __future__ import annotations

import json
import shutil
from collections.abc import Callable
from pathlib import Path
from typing import Any

from dialog_generator.hashing import HASH_FIELD, fingerprint, write_file
from dialog_generator.models import Feedback, FeedbackType

DIALOG_EXTENSION = ".dialog"
RECOGNIZER_SUFFIX = ".lu.dialog"


def all_files(root: Path) -> dict[str, Path]:
    """Map every file name under ``root`` to its path; later duplicates win."""
    return {path.name: path for path in sorted(Path(root).rglob("*")) if path.is_file()}


def walk_json(value: Any, visit: Callable[[Any, Any, Any], bool], parent: Any = None, key: Any = None) -> None:
    """Visit every node of a JSON tree depth first.

    ``visit(value, parent, key)`` returns True to stop descending below
    ``value``. Containers are snapshotted first so ``visit`` may replace
    entries of ``parent[key]``.
    """
    if visit(value, parent, key):
        return
    if isinstance(value, dict):
        for child_key, child in list(value.items()):
            walk_json(child, visit, value, child_key)
    elif isinstance(value, list):
        for index, child in enumerate(list(value)):
            walk_json(child, visit, value, index)


def _stamp(data: dict[str, Any]) -> dict[str, Any]:
    data.pop(HASH_FIELD, None)
    data[HASH_FIELD] = fingerprint(data)
    return data


def generate_singleton(root_name: str, in_dir: Path, out_dir: Path, feedback: Feedback) -> None:
    """Write ``out_dir`` as ``in_dir`` with dialogs referenced by the root inlined.

    Recognizers (``*.lu.dialog``) stay external references. Inlined dialogs
    are not written standalone; every other file is copied unchanged.
    """
    in_dir = Path(in_dir)
    out_dir = Path(out_dir)
    files = all_files(in_dir)
    main_name = f"{root_name}{DIALOG_EXTENSION}"
    if main_name not in files:
        feedback(FeedbackType.error, f"Missing root dialog {main_name} in {in_dir}")
        return

    main = json.loads(files[main_name].read_text(encoding="utf-8"))
    used: set[str] = set()

    def inline(value: Any, parent: Any, key: Any) -> bool:
        if not isinstance(value, str) or parent is None:
            return False
        ref = f"{value}{DIALOG_EXTENSION}"
        path = files.get(ref)
        if ref == main_name or path is None or ref.endswith(RECOGNIZER_SUFFIX):
            return False
        dialog = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(dialog, dict):
            return False
        dialog.pop("$schema", None)
        dialog.pop(HASH_FIELD, None)
        dialog["$source"] = path.name[: -len(DIALOG_EXTENSION)]
        parent[key] = _stamp(dialog)
        used.add(ref)
        return False

    walk_json(main, inline)
    if isinstance(main, dict):
        _stamp(main)

    for name, path in files.items():
        if name in used:
            continue
        out_path = out_dir / path.relative_to(in_dir)
        feedback(FeedbackType.info, f"Generating {out_path}")
        if name == main_name:
            write_file(out_path, json.dumps(main, indent=2, ensure_ascii=False), feedback, skip_hash=True)
        else:
            out_path.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(path, out_path)
