"""Resolve wire URIs into namespace roots."""

from __future__ import annotations

from collections.abc import Callable
from urllib.parse import urlsplit

from loguru import logger

from stardust.namespace.base import Entry, Folder
from stardust.namespace.context import Context

LinkOpener = Callable[[str], "Entry | None"]


class WireDialer:
    """Scheme registry for opening external namespaces.

    ``mem://<name>/<path>`` resolves against roots registered with
    ``register_namespace``; other schemes are plugged in by hosts.
    """

    def __init__(self) -> None:
        self._openers: dict[str, LinkOpener] = {"mem": self._open_mem}
        self._mem_roots: dict[str, Entry] = {}

    def register_scheme(self, scheme: str, opener: LinkOpener) -> None:
        self._openers[scheme] = opener

    def register_namespace(self, name: str, root: Entry) -> None:
        self._mem_roots[name] = root

    def open_link(self, link_uri: str) -> Entry | None:
        """Root entry for ``scheme://host``, or None when it can't be opened."""
        try:
            scheme = urlsplit(link_uri).scheme
        except ValueError as exc:
            logger.warning("Wire URI parsing failed. {} {}", link_uri, exc)
            return None

        opener = self._openers.get(scheme)
        if opener is None:
            logger.warning("Unknown wire URI scheme {}", scheme)
            return None

        logger.info("Importing {}", link_uri)
        try:
            return opener(link_uri)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Opening {} failed: {}", link_uri, exc)
            return None

    def open_wire(self, wire_uri: str) -> Folder | None:
        """Folder at the path part of ``scheme://host/path``."""
        try:
            uri = urlsplit(wire_uri)
        except ValueError as exc:
            logger.warning("Wire URI parsing failed. {} {}", wire_uri, exc)
            return None
        if not uri.scheme or not uri.netloc:
            logger.warning("Wire URI {} has no scheme or host", wire_uri)
            return None

        root = self.open_link(f"{uri.scheme}://{uri.netloc}")
        if root is None:
            return None
        return Context("tmp:/", root).get_folder(uri.path)

    def _open_mem(self, link_uri: str) -> Entry | None:
        return self._mem_roots.get(urlsplit(link_uri).netloc)
