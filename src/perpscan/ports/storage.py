# perpscan/ports/storage.py
from __future__ import annotations

from typing import Iterable, Protocol
from ..domain.models import Record


class RecordSink(Protocol):
    """Port for exporting a batch of formatted records (e.g., Parquet, JSONL)."""

    async def write_records(self, records: Iterable[Record]) -> int:
        """Persist the records; return how many were written."""
