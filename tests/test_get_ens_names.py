import unittest
from unittest.mock import patch

from get_ens_names import parse_args


class ParseArgsTests(unittest.TestCase):
    def test_defaults(self) -> None:
        args = parse_args(["-r", "http://node:8545"])
        self.assertEqual(args.rpc, "http://node:8545")
        self.assertEqual(args.format, "json")
        self.assertEqual(args.output, "./output.json")
        self.assertEqual(args.digits, [3, 4])

    def test_options(self) -> None:
        args = parse_args(["-b", "123", "-f", "csv", "-c", "50", "--digits", "3"])
        self.assertEqual(args.block, 123)
        self.assertEqual(args.format, "csv")
        self.assertEqual(args.chunk_size, 50)
        self.assertEqual(args.digits, [3])

    def test_rejects_unknown_format(self) -> None:
        with self.assertRaises(SystemExit):
            parse_args(["-f", "xml"])

    def test_rejects_non_positive_chunk_size(self) -> None:
        with self.assertRaises(SystemExit):
            parse_args(["-c", "0"])

    def test_env_defaults_are_converted(self) -> None:
        with patch.dict("os.environ", {"ENS_CHUNK_SIZE": "25", "ENS_BLOCK": "100"}, clear=False):
            args = parse_args([])
        self.assertEqual(args.chunk_size, 25)
        self.assertEqual(args.block, 100)

    def test_flags_override_env(self) -> None:
        with patch.dict("os.environ", {"ENS_CHUNK_SIZE": "25"}, clear=False):
            args = parse_args(["-c", "7"])
        self.assertEqual(args.chunk_size, 7)

    def test_rejects_non_positive_env_chunk_size(self) -> None:
        with patch.dict("os.environ", {"ENS_CHUNK_SIZE": "0"}, clear=False):
            with self.assertRaises(SystemExit):
                parse_args([])

    def test_rejects_non_numeric_env_block(self) -> None:
        with patch.dict("os.environ", {"ENS_BLOCK": "latest-ish"}, clear=False):
            with self.assertRaises(SystemExit):
                parse_args([])
