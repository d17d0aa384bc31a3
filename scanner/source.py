"""Streaming reader for ranked origin lists (``rank,origin`` per line)."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

from scanner.errors import SourceNotFoundError

logger = logging.getLogger(__name__)

_RANK_RE = re.compile(r"\d+", re.ASCII)


@dataclass(frozen=True)
class OriginRecord:
    rank: int
    origin: str

    def __iter__(self) -> Iterator[int | str]:
        # Allows ``rank, origin = record`` unpacking.
        yield self.rank
        yield self.origin


def parse_line(line: str) -> OriginRecord | None:
    """Parse a single ``rank,origin`` line.

    Returns None for blank lines, empty origins and ranks that are not plain
    ASCII digits. Only the first comma splits; anything after it belongs to the origin.
    """
    line = line.strip()
    if not line:
        return None

    rank_field, sep, origin_field = line.partition(",")
    if not sep:
        return None

    rank_field = rank_field.strip()
    if not _RANK_RE.fullmatch(rank_field):
        return None
    rank = int(rank_field)

    origin = origin_field.strip()
    if not origin:
        return None

    return OriginRecord(rank=rank, origin=origin)


class OriginSource:
    """A lazy, re-iterable sequence of :class:`OriginRecord`.

    The file is opened afresh on every iteration and read one line at a
    time, so memory use does not depend on the size of the list. A missing
    file is reported when the source is constructed, before any record is
    produced.
    """

    def __init__(self, path: str | Path, max_rank: int | None = None) -> None:
        self.path = Path(path)
        self.max_rank = max_rank
        if not self.path.is_file():
            raise SourceNotFoundError(f"Origin list not found: {self.path}")

    def __iter__(self) -> Iterator[OriginRecord]:
        with self.path.open("r", encoding="utf-8", errors="replace") as fh:
            for line_number, line in enumerate(fh, start=1):
                if not line.strip():
                    logger.debug("Skipping blank line #%d", line_number)
                    continue

                record = parse_line(line)
                if record is None:
                    logger.warning(
                        "Skipping invalid line #%d: %r", line_number, line.rstrip("\r\n")
                    )
                    continue

                if self.max_rank is not None and record.rank > self.max_rank:
                    continue

                yield record

    def __repr__(self) -> str:
        return f"OriginSource(path={str(self.path)!r}, max_rank={self.max_rank!r})"
