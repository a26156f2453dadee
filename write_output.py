import json
import os
from typing import List, Sequence

import polars as pl

from ens_pipeline import OUTPUT_FIELDS, Record

SUPPORTED_FORMATS = ("csv", "json")


class InvalidFormatError(ValueError):
    pass


def check_format(fmt: str) -> str:
    if fmt not in SUPPORTED_FORMATS:
        raise InvalidFormatError(f"Invalid format: {fmt!r} (expected one of {SUPPORTED_FORMATS})")
    return fmt


def records_to_frame(records: Sequence[Record]) -> pl.DataFrame:
    rows = [r.to_row() for r in records]
    return pl.DataFrame(
        {field: [row[field] for row in rows] for field in OUTPUT_FIELDS},
        schema={field: pl.Utf8 for field in OUTPUT_FIELDS},
    )


def write_records(records: Sequence[Record], fmt: str, path: str) -> str:
    """Serialize `records` to `path` as csv or json. Nothing is written for an unknown format."""
    check_format(fmt)
    parent = os.path.dirname(os.path.abspath(path))
    os.makedirs(parent, exist_ok=True)
    if fmt == "csv":
        records_to_frame(records).write_csv(path)
    else:
        rows: List[dict] = [r.to_row() for r in records]
        with open(path, "w", encoding="utf-8") as f:
            json.dump(rows, f, indent=2)
    print(f"Wrote {len(records)} records to {path}")
    return path
