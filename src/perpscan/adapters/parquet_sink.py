from __future__ import annotations
import os
from typing import Iterable

import pyarrow as pa
import pyarrow.parquet as pq

from ..domain.models import Record, record_to_row
from ..ports.storage import RecordSink

_ORDER = ("block_number", "tx_hash", "log_index")

def _records_to_table(records: Iterable[Record]) -> pa.Table:
    rows = [record_to_row(r) for r in records]
    if not rows:
        return pa.table({"record": pa.array([], pa.string())})
    table = pa.Table.from_pylist(rows)
    if all(c in table.column_names for c in _ORDER):
        table = table.sort_by([("block_number", "ascending"),
                               ("log_index", "ascending")])
    return table

class ParquetRecordSink(RecordSink):
    """Writes one batch of records to a single Parquet file (atomic replace)."""

    def __init__(self, path: str, codec: str = "zstd") -> None:
        self.path = path
        self.codec = codec
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)

    async def write_records(self, records: Iterable[Record]) -> int:
        table = _records_to_table(records)
        tmp = self.path + ".tmp"
        pq.write_table(table, tmp, compression=self.codec)
        os.replace(tmp, self.path)
        return len(table)
