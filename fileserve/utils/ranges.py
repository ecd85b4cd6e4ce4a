"""
HTTP Range header resolution.

Turns a resource size plus an optional ``Range`` header into a delivery
plan. Only single-range delivery is supported: a comma separated list is
accepted but only its last spec takes effect.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import status


class MalformedRangeError(ValueError):
    """Range header is syntactically invalid or not satisfiable."""


@dataclass(frozen=True)
class DeliveryPlan:
    is_partial: bool
    status_code: int
    start_offset: int
    length: int
    total_size: int

    @property
    def end_offset(self) -> int:
        """Inclusive offset of the last byte delivered."""
        return self.start_offset + self.length - 1

    def content_range(self) -> str:
        return f"bytes {self.start_offset}-{self.end_offset}/{self.total_size}"


def full_content_plan(total_size: int) -> DeliveryPlan:
    return DeliveryPlan(
        is_partial=False,
        status_code=status.HTTP_200_OK,
        start_offset=0,
        length=total_size,
        total_size=total_size,
    )


def _parse_offset(token: str, header: str) -> int:
    token = token.strip()
    if not token.isdecimal():
        raise MalformedRangeError(f"Invalid byte offset in Range header: {header!r}")
    return int(token)


def _parse_spec(spec: str, total_size: int, header: str) -> tuple[int, int]:
    """Parse one range spec into an (unclamped) inclusive start/end pair."""
    spec = spec.strip()
    if not spec:
        raise MalformedRangeError(f"Empty range spec in Range header: {header!r}")

    if "-" not in spec:
        # "N" selects exactly one byte
        start = _parse_offset(spec, header)
        return start, start

    start_str, end_str = spec.split("-", 1)
    start_str, end_str = start_str.strip(), end_str.strip()

    if not start_str:
        # "-N" is an RFC 9110 suffix range: the last N bytes, not 0..N.
        suffix = _parse_offset(end_str, header)
        if suffix == 0:
            raise MalformedRangeError(f"Zero-length suffix range: {header!r}")
        return max(0, total_size - suffix), total_size - 1

    start = _parse_offset(start_str, header)
    if not end_str:
        return start, total_size - 1

    end = _parse_offset(end_str, header)
    if end < start:
        raise MalformedRangeError(f"Range end precedes start: {header!r}")
    return start, end


def resolve_range(total_size: int, range_header: Optional[str]) -> DeliveryPlan:
    """
    Resolve a Range header against a resource of ``total_size`` bytes.

    Returns a full-content plan (200) when no header is given, otherwise a
    partial plan (206) for the last range spec in the header.

    Raises:
        MalformedRangeError: header syntax is invalid or the clamped window
            is empty.
    """
    if range_header is None or not range_header.strip():
        return full_content_plan(total_size)

    unit, sep, ranges = range_header.strip().partition("=")
    if not sep or unit.strip().lower() != "bytes":
        raise MalformedRangeError(f"Unsupported Range header: {range_header!r}")

    # Every spec must parse; the last one wins.
    parsed = [_parse_spec(spec, total_size, range_header) for spec in ranges.split(",")]
    start, end = parsed[-1]

    start = max(0, start)
    end = min(end, total_size - 1)
    if start > end:
        raise MalformedRangeError(
            f"Range not satisfiable for size {total_size}: {range_header!r}"
        )

    return DeliveryPlan(
        is_partial=True,
        status_code=status.HTTP_206_PARTIAL_CONTENT,
        start_offset=start,
        length=end - start + 1,
        total_size=total_size,
    )
