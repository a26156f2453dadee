"""
Three-stage ENS aggregation pipeline: owner -> resolver -> address.

Each stage maps the current records to calls, runs them through Multicall3 in chunks,
zips the results back onto new Record instances and filters the failures out. The
address stage first validates every unseen resolver with a single probe call, since
not every resolver implements addr(bytes32).
"""

import asyncio
import sys
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from eth_abi.exceptions import DecodingError
from web3 import Web3

from ens_contracts import (
    PUBLIC_RESOLVER_ADDRESS,
    REGISTRY_ADDRESS,
    Call,
    RegistryContract,
    ResolverContract,
    is_zero_address,
    namehash_hex,
)
from multicall import DEFAULT_CHUNK_SIZE, MULTICALL3_ADDRESS, call_single, try_all
from rpc_client import CallRevertedError


@dataclass(frozen=True)
class Record:
    name: str
    label: str
    name_hash: str
    owner: Optional[str] = None
    resolver: Optional[str] = None
    address: Optional[str] = None
    should_remove: bool = False

    def to_row(self) -> Dict[str, Optional[str]]:
        return {
            "name": self.name,
            "label": self.label,
            "nameHash": self.name_hash,
            "owner": self.owner,
            "resolver": self.resolver,
            "address": self.address,
        }


OUTPUT_FIELDS: List[str] = ["name", "label", "nameHash", "owner", "resolver", "address"]


def build_catalog(digit_lengths: Iterable[int] = (3, 4), tld: str = "eth") -> List[Record]:
    """Zero-padded numeric labels of each length, e.g. 000.eth .. 999.eth then 0000.eth .."""
    records: List[Record] = []
    for digits in digit_lengths:
        for i in range(10**digits):
            label = str(i).zfill(digits)
            name = f"{label}.{tld}"
            records.append(Record(name=name, label=label, name_hash=namehash_hex(name)))
    return records


# =====================
# Resolver cache
# =====================


@dataclass(frozen=True)
class ResolverEntry:
    address: str
    contract: ResolverContract


class ResolverCache:
    """Validated resolvers keyed by checksummed address. Entries are never removed."""

    def __init__(self, entries: Iterable[ResolverEntry] = ()):
        self._entries: Dict[str, ResolverEntry] = {e.address: e for e in entries}
        self._lock = asyncio.Lock()

    def get(self, address: str) -> Optional[ResolverEntry]:
        return self._entries.get(Web3.to_checksum_address(address))

    async def upsert(self, entry: ResolverEntry) -> None:
        async with self._lock:
            self._entries[entry.address] = entry

    def __len__(self) -> int:
        return len(self._entries)


def default_resolver_cache() -> ResolverCache:
    return ResolverCache(
        [ResolverEntry(Web3.to_checksum_address(PUBLIC_RESOLVER_ADDRESS),
                       ResolverContract(PUBLIC_RESOLVER_ADDRESS))]
    )


# =====================
# Stages
# =====================


async def run_stage(
    records: Sequence[Record],
    to_call: Callable[[Record], Call],
    merge: Callable[[Record, Any], Record],
    keep: Callable[[Record], bool],
    client: Any,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    block: Optional[int] = None,
    multicall_address: str = MULTICALL3_ADDRESS,
) -> List[Record]:
    calls = [to_call(r) for r in records]
    results = await try_all(client, calls, chunk_size, block, multicall_address)
    merged = [merge(r, res) for r, res in zip(records, results)]
    return [r for r in merged if keep(r)]


async def fetch_owners(
    records: Sequence[Record], registry: RegistryContract, client: Any, **batch: Any
) -> List[Record]:
    return await run_stage(
        records,
        lambda r: registry.owner(r.name_hash),
        lambda r, owner: replace(r, owner=owner),
        lambda r: not is_zero_address(r.owner),
        client,
        **batch,
    )


async def fetch_resolvers(
    records: Sequence[Record], registry: RegistryContract, client: Any, **batch: Any
) -> List[Record]:
    return await run_stage(
        records,
        lambda r: registry.resolver(r.name_hash),
        lambda r, resolver: replace(r, resolver=resolver),
        lambda r: not is_zero_address(r.resolver),
        client,
        **batch,
    )


@dataclass(frozen=True)
class ProbeResult:
    ok: bool
    entry: Optional[ResolverEntry] = None
    error: Optional[str] = None


async def probe_resolver(
    record: Record, client: Any, block: Optional[int] = None
) -> ProbeResult:
    contract = ResolverContract(record.resolver)
    try:
        await call_single(client, contract.addr(record.name_hash), block)
    except (CallRevertedError, DecodingError) as exc:
        return ProbeResult(ok=False, error=str(exc))
    return ProbeResult(ok=True, entry=ResolverEntry(contract.address, contract))


async def validate_resolvers(
    records: Sequence[Record],
    cache: ResolverCache,
    client: Any,
    block: Optional[int] = None,
    debug: bool = False,
) -> List[ProbeResult]:
    """One ProbeResult per record, in order. Successful probes are added to `cache`."""

    async def _validate_one(record: Record) -> ProbeResult:
        entry = cache.get(record.resolver)
        if entry is not None:
            return ProbeResult(ok=True, entry=entry)
        result = await probe_resolver(record, client, block)
        if result.ok:
            await cache.upsert(result.entry)
        elif debug:
            print(
                f"Resolver {record.resolver} rejected for {record.name}: {result.error}",
                file=sys.stderr,
            )
        return result

    return list(await asyncio.gather(*[_validate_one(r) for r in records]))


async def fetch_addresses(
    records: Sequence[Record],
    cache: ResolverCache,
    client: Any,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    block: Optional[int] = None,
    multicall_address: str = MULTICALL3_ADDRESS,
    debug: bool = False,
) -> List[Record]:
    probes = await validate_resolvers(records, cache, client, block, debug)
    marked = [replace(r, should_remove=not p.ok) for r, p in zip(records, probes)]
    survivors = [r for r in marked if not r.should_remove]
    return await run_stage(
        survivors,
        lambda r: cache.get(r.resolver).contract.addr(r.name_hash),
        lambda r, address: replace(r, address=address),
        lambda r: r.address is not None and not r.should_remove,
        client,
        chunk_size,
        block,
        multicall_address,
    )


# =====================
# Orchestrator
# =====================


async def harvest(
    client: Any,
    records: Optional[Sequence[Record]] = None,
    registry_address: str = REGISTRY_ADDRESS,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    block: Optional[int] = None,
    multicall_address: str = MULTICALL3_ADDRESS,
    cache: Optional[ResolverCache] = None,
    debug: bool = False,
) -> List[Record]:
    registry = RegistryContract(registry_address)
    cache = cache if cache is not None else default_resolver_cache()
    names = list(records) if records is not None else build_catalog()
    batch = {"chunk_size": chunk_size, "block": block, "multicall_address": multicall_address}

    print(f"Fetching owners for {len(names)} names...")
    names = await fetch_owners(names, registry, client, **batch)
    print(f"Fetched all owners, valid name count: {len(names)}")

    print("Fetching resolvers...")
    names = await fetch_resolvers(names, registry, client, **batch)
    print(f"Fetched all resolvers, valid name count: {len(names)}")

    print("Fetching addresses...")
    names = await fetch_addresses(names, cache, client, debug=debug, **batch)
    print(f"Fetched all addresses, valid name count: {len(names)}")
    if debug:
        print(f"Validated resolvers: {len(cache)}")
    return names
