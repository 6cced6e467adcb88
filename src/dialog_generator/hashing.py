"""Content fingerprints embedded in generated artifacts, plus the artifact writer."""

from __future__ import annotations

import hashlib
import json
import os
import re
from pathlib import Path
from typing import Any

from dialog_generator.models import Feedback, FeedbackType

COMMENT_HASH_EXTENSIONS = (".lg", ".lu", ".qna")
JSON_HASH_EXTENSIONS = (".dialog",)
HASH_FIELD = "$Generator"

GENERATOR_RE = re.compile(r"\r?\n> Generator: ([a-zA-Z0-9]+)")
POSITION_RE = re.compile(r"position ([0-9]+)")


def normalize_eol(text: str) -> str:
    """Normalize line endings to the host convention.

    Shell scripts (content starting with ``#!/``) always get line feeds only.
    """
    if text.startswith("#!/"):
        return text.replace("\r", "")
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    if os.linesep != "\n":
        text = text.replace("\n", os.linesep)
    return text


def stringify(value: Any) -> str:
    """Serialize JSON-like values with two-space indentation; strings pass through."""
    if isinstance(value, str):
        return value
    return normalize_eol(json.dumps(value, indent=2, ensure_ascii=False))


def fingerprint(content: Any) -> str:
    """Return a stable md5 digest of text or JSON-like content."""
    if isinstance(content, str):
        text = content.replace("\r\n", "\n").replace("\r", "\n")
    else:
        text = json.dumps(content, indent=2, ensure_ascii=False, sort_keys=True)
    return hashlib.md5(text.encode("utf-8")).hexdigest()


def embed_hash(path: Path | str, content: str) -> str:
    """Return ``content`` with a fresh fingerprint for artifact kinds that carry one."""
    ext = Path(path).suffix
    if ext in COMMENT_HASH_EXTENSIONS:
        content = GENERATOR_RE.sub("", content)
        if not content.endswith(os.linesep):
            content += os.linesep
        content += f"{os.linesep}> Generator: {fingerprint(content)}"
    elif ext in JSON_HASH_EXTENSIONS:
        data = json.loads(content)
        if isinstance(data, dict):
            data.pop(HASH_FIELD, None)
            data[HASH_FIELD] = fingerprint(data)
        content = stringify(data)
    return content


def extract_hash(path: Path | str) -> str | None:
    """Return the fingerprint embedded in an artifact, if any."""
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
        if path.suffix in COMMENT_HASH_EXTENSIONS:
            match = GENERATOR_RE.search(text)
            return match.group(1) if match else None
        if path.suffix in JSON_HASH_EXTENSIONS:
            data = json.loads(text)
            if isinstance(data, dict) and isinstance(data.get(HASH_FIELD), str):
                return data[HASH_FIELD]
    except (OSError, ValueError):
        return None
    return None


def is_unchanged(path: Path | str) -> bool:
    """Check whether an artifact still matches the fingerprint it was generated with."""
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
        if path.suffix in COMMENT_HASH_EXTENSIONS:
            match = GENERATOR_RE.search(text)
            if match:
                return match.group(1) == fingerprint(GENERATOR_RE.sub("", text))
        elif path.suffix in JSON_HASH_EXTENSIONS:
            data = json.loads(text)
            if isinstance(data, dict) and data.get(HASH_FIELD):
                old_hash = data.pop(HASH_FIELD)
                return old_hash == fingerprint(data)
    except (OSError, ValueError):
        return False
    return False


def _error_offset(exc: Exception) -> int | None:
    for attr in ("pos", "start"):
        value = getattr(exc, attr, None)
        if isinstance(value, int):
            return value
    match = POSITION_RE.search(str(exc))
    return int(match.group(1)) if match else None


def write_file(path: Path, content: str, feedback: Feedback, skip_hash: bool = False) -> None:
    """Write an artifact, normalizing line endings and embedding its fingerprint.

    Failures are reported through ``feedback``. When the failure carries a
    character offset, the reported content is marked with ``^^^`` there.
    """
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        content = normalize_eol(content)
        if not skip_hash:
            content = embed_hash(path, content)
        path.write_text(content, encoding="utf-8", newline="")
    except (OSError, ValueError) as exc:
        offset = _error_offset(exc)
        if offset is not None:
            content = f"{content[:offset]}^^^{content[offset:]}"
        feedback(FeedbackType.error, f"{exc}{os.linesep}{content}")
