"""Small shared helpers: timestamps, number text, path strings."""

from __future__ import annotations

import math
import time
from decimal import Decimal


def rfc3339_nano(ns: int | None = None) -> str:
    """UTC timestamp with nanosecond precision, trailing zeros trimmed."""
    if ns is None:
        ns = time.time_ns()
    seconds, frac = divmod(ns, 1_000_000_000)
    stamp = time.strftime("%Y-%m-%dT%H:%M:%S", time.gmtime(seconds))
    if frac:
        stamp += "." + f"{frac:09d}".rstrip("0")
    return stamp + "Z"


def rfc3339(ns: int | None = None) -> str:
    """UTC timestamp with whole-second precision."""
    if ns is None:
        ns = time.time_ns()
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(ns // 1_000_000_000))


def format_number(value: int | float) -> str:
    """Canonical decimal text for a script number.

    Integral values print without a fraction; exponent notation kicks in
    below 1e-4 and at or above 1e21.
    """
    if isinstance(value, int):
        return str(value)
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    if value == 0:
        return "0"

    dec = Decimal(repr(value)).normalize()
    exponent = dec.adjusted()
    if -4 <= exponent < 21:
        return format(dec, "f")

    sign, digits, _ = dec.as_tuple()
    mantissa = str(digits[0])
    if len(digits) > 1:
        mantissa += "." + "".join(str(d) for d in digits[1:])
    return f"{'-' if sign else ''}{mantissa}e{'-' if exponent < 0 else '+'}{abs(exponent):02d}"


def split_path(path: str) -> list[str]:
    """Split a slash path into segments, dropping empty and '.' parts."""
    return [part for part in path.split("/") if part and part != "."]


def join_path(*parts: str) -> str:
    """Join segments into an absolute slash path; no segments means self."""
    if not parts:
        return ""
    return "/" + "/".join(parts)
