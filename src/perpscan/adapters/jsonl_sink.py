from __future__ import annotations
import os, json, asyncio
from typing import Iterable
from ..domain.models import Record, record_to_row
from ..ports.storage import RecordSink

class JSONLRecordSink(RecordSink):
    """One JSON line per record.

    The first batch replaces any existing file (tmp + os.replace); later
    batches on the same sink append to it.
    """

    def __init__(self, path: str) -> None:
        self.path = path
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
        self._lock = asyncio.Lock()
        self._started = False

    async def write_records(self, records: Iterable[Record]) -> int:
        lines = [json.dumps(record_to_row(r), separators=(",", ":")) + "\n" for r in records]
        async with self._lock:
            if not self._started:
                tmp = self.path + ".tmp"
                with open(tmp, "w") as f:
                    f.writelines(lines); f.flush(); os.fsync(f.fileno())
                os.replace(tmp, self.path)
                self._started = True
            else:
                with open(self.path, "a") as f:
                    f.writelines(lines); f.flush(); os.fsync(f.fileno())
        return len(lines)
