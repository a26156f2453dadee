#!/usr/bin/env python3
"""
Harvest short numeric .eth names (000.eth .. 9999.eth) with their owner, resolver and
resolved address, and write the survivors to CSV or JSON.

Reads go through Multicall3 in chunks of --chunk-size calls, so a full run is a few
dozen eth_calls plus one probe per previously unseen resolver.

Env overrides (also read from .env):
- ENS_RPC_URL (default http://localhost:8545)
- ENS_BLOCK (default: latest, per request)
- ENS_CHUNK_SIZE (default 500)
- ENS_GLOBAL_RPS (default 50)
- ENS_ENDPOINT_CONCURRENCY (default 8)
- ENS_RPC_TIMEOUT (default 60 seconds)
- ENS_DEBUG (default 1)

Run: `python get_ens_names.py -r https://eth.example -f csv -o names.csv`
"""

import argparse
import asyncio
import os
import sys
from typing import List, Optional

import aiohttp
from dotenv import load_dotenv

from ens_contracts import REGISTRY_ADDRESS
from ens_pipeline import build_catalog, default_resolver_cache, harvest
from multicall import MULTICALL3_ADDRESS
from rpc_client import RpcClient
from write_output import SUPPORTED_FORMATS, write_records

load_dotenv()


# =====================
# CONFIG (env-overridable)
# =====================

RPC_URL = os.environ.get("ENS_RPC_URL") or "http://localhost:8545"
GLOBAL_RPS = int(os.environ.get("ENS_GLOBAL_RPS", "50"))
PER_ENDPOINT_CONCURRENCY = int(os.environ.get("ENS_ENDPOINT_CONCURRENCY", "8"))
RPC_TIMEOUT = float(os.environ.get("ENS_RPC_TIMEOUT", "60"))
DEBUG = os.environ.get("ENS_DEBUG", "1") == "1"


def _positive_int(value: str) -> int:
    n = int(value)
    if n <= 0:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {value}")
    return n


def _digit_lengths(value: str) -> List[int]:
    try:
        lengths = [int(v) for v in value.split(",") if v.strip()]
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid digit lengths: {value}")
    if not lengths or any(n <= 0 for n in lengths):
        raise argparse.ArgumentTypeError(f"invalid digit lengths: {value}")
    return lengths


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Fetch owner, resolver and address for short numeric ENS names."
    )
    parser.add_argument(
        "-r",
        "--rpc",
        default=RPC_URL,
        help="The RPC URL for the Ethereum node you want to connect to",
    )
    parser.add_argument(
        "-b",
        "--block",
        type=int,
        # string defaults go through `type`, so bad env values are reported like bad flags
        default=os.environ.get("ENS_BLOCK", "").strip() or None,
        help="The block number to pull data from (default: latest)",
    )
    parser.add_argument(
        "-f",
        "--format",
        default="json",
        choices=SUPPORTED_FORMATS,
        help="The format to output the data in",
    )
    parser.add_argument(
        "-o", "--output", default="./output.json", help="The path to output the data to"
    )
    parser.add_argument(
        "-c",
        "--chunk-size",
        type=_positive_int,
        default=os.environ.get("ENS_CHUNK_SIZE", "").strip() or "500",
        help="The number of calls to aggregate per multicall request",
    )
    parser.add_argument("--registry", default=REGISTRY_ADDRESS, help="ENS registry address")
    parser.add_argument(
        "--multicall", default=MULTICALL3_ADDRESS, help="Multicall3 contract address"
    )
    parser.add_argument(
        "--digits",
        type=_digit_lengths,
        default=[3, 4],
        help="Comma separated label lengths to enumerate (default: 3,4)",
    )
    return parser.parse_args(argv)


async def main_async(args: argparse.Namespace) -> None:
    records = build_catalog(args.digits)
    async with aiohttp.ClientSession() as session:
        client = RpcClient(
            args.rpc,
            session,
            concurrency=PER_ENDPOINT_CONCURRENCY,
            rate_per_sec=GLOBAL_RPS,
            timeout=RPC_TIMEOUT,
        )
        if DEBUG:
            chain_id = await client.eth_chainId()
            latest = await client.eth_blockNumber()
            block_str = args.block if args.block is not None else f"latest ({latest})"
            print(f"Connected to chain_id={chain_id}, reading at block {block_str}")
        names = await harvest(
            client,
            records,
            registry_address=args.registry,
            chunk_size=args.chunk_size,
            block=args.block,
            multicall_address=args.multicall,
            cache=default_resolver_cache(),
            debug=DEBUG,
        )
    write_records(names, args.format, args.output)


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    try:
        asyncio.run(main_async(args))
    except KeyboardInterrupt:
        print("Interrupted by user", file=sys.stderr)


if __name__ == "__main__":
    main()
