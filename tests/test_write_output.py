import csv
import json
import tempfile
import unittest
from pathlib import Path

from ens_contracts import namehash_hex
from ens_pipeline import Record
from write_output import InvalidFormatError, write_records

RECORDS = [
    Record(
        name=f"{label}.eth",
        label=label,
        name_hash=namehash_hex(f"{label}.eth"),
        owner="0x1111111111111111111111111111111111111111",
        resolver="0x4976fb03C32e5B8cfe2b6cCB31c09Ba78EBaBa41",
        address=f"0x{i:040x}",
    )
    for i, label in enumerate(["000", "042", "0999"], start=1)
]


class WriteRecordsTests(unittest.TestCase):
    def test_unknown_format_writes_nothing(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "out" / "names.xml"
            with self.assertRaises(InvalidFormatError):
                write_records(RECORDS, "xml", str(path))
            self.assertFalse(path.exists())
            self.assertFalse(path.parent.exists())

    def test_json_round_trip(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "names.json"
            write_records(RECORDS, "json", str(path))
            loaded = json.loads(path.read_text(encoding="utf-8"))
        self.assertEqual(loaded, [r.to_row() for r in RECORDS])
        self.assertNotIn("should_remove", loaded[0])

    def test_csv_round_trip(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "nested" / "names.csv"
            write_records(RECORDS, "csv", str(path))
            with open(path, encoding="utf-8", newline="") as f:
                rows = list(csv.DictReader(f))
        rebuilt = [
            Record(
                name=row["name"],
                label=row["label"],
                name_hash=row["nameHash"],
                owner=row["owner"],
                resolver=row["resolver"],
                address=row["address"],
            )
            for row in rows
        ]
        self.assertEqual(rebuilt, RECORDS)

    def test_csv_header_for_empty_result(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "names.csv"
            write_records([], "csv", str(path))
            header = path.read_text(encoding="utf-8").splitlines()[0]
        self.assertEqual(header, "name,label,nameHash,owner,resolver,address")
