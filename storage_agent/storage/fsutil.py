#!/usr/bin/env python3
# CUI // SP-CTI
"""Local filesystem helpers used when staging remote objects to disk."""

import hashlib
import os
import shutil
from typing import Any, BinaryIO

from storage_agent.resilience.errors import LocalIOError

DIR_MODE = 0o770


def file_exists(path: str) -> bool:
    """True only for an existing regular file; stat errors count as absent."""
    return os.path.isfile(path)


def create(path: str) -> BinaryIO:
    """Create parent directories, then open ``path`` for binary writing."""
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, mode=DIR_MODE, exist_ok=True)
    return open(path, "wb")


def remove_dir(path: str) -> None:
    """Remove every child of ``path`` and then ``path`` itself.

    Raises FileNotFoundError when the directory is already gone.
    """
    for name in os.listdir(path):
        child = os.path.join(path, name)
        if os.path.isdir(child) and not os.path.islink(child):
            shutil.rmtree(child)
        else:
            os.remove(child)
    try:
        os.rmdir(path)
    except OSError as exc:
        raise LocalIOError(f"dir is unable to be deleted: {exc}", path=path) from exc


def as_sha256(obj: Any) -> str:
    """Hex sha256 of ``str(obj)``; a stable identifier, not a security boundary."""
    return hashlib.sha256(str(obj).encode("utf-8")).hexdigest()
