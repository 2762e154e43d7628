"""Namespace helpers built on the Context contract."""

from __future__ import annotations

from loguru import logger

from stardust.namespace.base import Folder
from stardust.namespace.context import Context
from stardust.namespace.inmem import MemFolder
from stardust.utils.helpers import join_path, split_path


def mkdirp(ctx: Context, path: str) -> bool:
    """Ensure every folder along ``path`` exists. Existing folders are kept."""
    walked: list[str] = []
    for part in split_path(path):
        walked.append(part)
        current = join_path(*walked)
        entry = ctx.get(current)
        if isinstance(entry, Folder):
            continue
        if entry is not None:
            logger.debug("mkdirp blocked by non-folder at {} in {}", current, ctx.name())
            return False
        if not ctx.put(current, MemFolder(part)):
            logger.debug("mkdirp couldn't create {} in {}", current, ctx.name())
            return False
    return True
