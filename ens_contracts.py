"""
ENS registry / resolver call builders and the namehash function.

Calls are built with eth_abi directly (no web3 Contract objects) so that they can be
packed into Multicall3 batches and decoded from raw return data.
"""

from dataclasses import dataclass
from typing import Any, Tuple

from eth_abi import decode, encode
from eth_utils import function_signature_to_4byte_selector, keccak
from web3 import Web3

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

REGISTRY_ADDRESS = "0x00000000000C2E074eC69A0dFb2997BA6C7d2e1e"
PUBLIC_RESOLVER_ADDRESS = "0x4976fb03C32e5B8cfe2b6cCB31c09Ba78EBaBa41"


def namehash(name: str) -> bytes:
    """EIP-137 namehash: fold keccak(label) from the rightmost label inwards.

    Labels are hashed as given, without ENSIP-15 / UTS-46 normalization, so callers must
    pass names that are already normalized (the numeric catalog always is).
    """
    node = b"\x00" * 32
    if not name:
        return node
    for label in reversed(name.split(".")):
        node = keccak(node + keccak(text=label))
    return node


def namehash_hex(name: str) -> str:
    return "0x" + namehash(name).hex()


def _node_bytes(name_hash: Any) -> bytes:
    if isinstance(name_hash, (bytes, bytearray)):
        return bytes(name_hash)
    return bytes.fromhex(name_hash[2:] if name_hash.startswith("0x") else name_hash)


def is_zero_address(value: Any) -> bool:
    return value is None or str(value).lower() == ZERO_ADDRESS


@dataclass(frozen=True)
class Call:
    """One read call: target contract, calldata and the ABI types of its result."""

    target: str
    data: bytes
    output_types: Tuple[str, ...]

    def decode(self, return_data: bytes) -> Any:
        # raises eth_abi DecodingError on short / empty return data
        value = decode(list(self.output_types), return_data)[0]
        if self.output_types[0] == "address":
            return Web3.to_checksum_address(value)
        return value


class _ContractHandle:
    def __init__(self, address: str):
        self.address = Web3.to_checksum_address(address)

    def _call(self, signature: str, arg_types: Tuple[str, ...], args: Tuple[Any, ...],
              output_types: Tuple[str, ...]) -> Call:
        selector = function_signature_to_4byte_selector(signature)
        return Call(self.address, selector + encode(list(arg_types), list(args)), output_types)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.address})"


class RegistryContract(_ContractHandle):
    def owner(self, name_hash: Any) -> Call:
        return self._call("owner(bytes32)", ("bytes32",), (_node_bytes(name_hash),), ("address",))

    def resolver(self, name_hash: Any) -> Call:
        return self._call("resolver(bytes32)", ("bytes32",), (_node_bytes(name_hash),), ("address",))


class ResolverContract(_ContractHandle):
    def addr(self, name_hash: Any) -> Call:
        return self._call("addr(bytes32)", ("bytes32",), (_node_bytes(name_hash),), ("address",))
