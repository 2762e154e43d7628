"""Utility helpers."""

from stardust.utils.helpers import format_number, join_path, rfc3339, rfc3339_nano, split_path

__all__ = ["format_number", "join_path", "rfc3339", "rfc3339_nano", "split_path"]
