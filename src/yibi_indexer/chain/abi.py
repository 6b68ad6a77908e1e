"""Contract interface description.

The indexer only needs the two events and the ``getLevel`` view. A built-in
ABI covers them; ``chain.abi_path`` can point at a full ABI instead, either a
raw JSON array or a Hardhat/Foundry artifact with an ``abi`` field.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from web3 import Web3

from yibi_indexer.chain.events import EventKind

_POINT_COMPONENTS = [
    {"name": "x", "type": "uint8"},
    {"name": "y", "type": "uint8"},
]

_HINT_COMPONENTS = [
    {"name": "coord", "type": "tuple", "components": _POINT_COMPONENTS},
    {"name": "value", "type": "uint16"},
]

DEFAULT_ABI: list[dict[str, Any]] = [
    {
        "type": "event",
        "name": EventKind.CREATED.value,
        "anonymous": False,
        "inputs": [
            {"name": "levelId", "type": "uint256", "indexed": True},
            {"name": "creator", "type": "address", "indexed": True},
            {"name": "name", "type": "string", "indexed": False},
            {"name": "size", "type": "uint8", "indexed": False},
            {"name": "hintsCount", "type": "uint256", "indexed": False},
        ],
    },
    {
        "type": "event",
        "name": EventKind.SOLVED.value,
        "anonymous": False,
        "inputs": [
            {"name": "levelId", "type": "uint256", "indexed": True},
            {"name": "solver", "type": "address", "indexed": True},
            {"name": "pathLength", "type": "uint256", "indexed": False},
            {"name": "isFirst", "type": "bool", "indexed": False},
        ],
    },
    {
        "type": "function",
        "name": "getLevel",
        "stateMutability": "view",
        "inputs": [{"name": "levelId", "type": "uint256"}],
        "outputs": [
            {
                "name": "level",
                "type": "tuple",
                "components": [
                    {"name": "id", "type": "uint256"},
                    {"name": "name", "type": "string"},
                    {"name": "size", "type": "uint8"},
                    {"name": "creator", "type": "address"},
                    {"name": "createdAt", "type": "uint256"},
                    {"name": "completionCount", "type": "uint256"},
                    {"name": "hints", "type": "tuple[]", "components": _HINT_COMPONENTS},
                ],
            }
        ],
    },
]


def load_abi(path: str | Path | None = None) -> list[dict[str, Any]]:
    """Return the ABI at ``path``, or :data:`DEFAULT_ABI` when no path is set.

    Raises:
        ValueError: The file is not a JSON ABI array or artifact.
    """
    if not path:
        return DEFAULT_ABI
    with open(path, encoding="utf-8") as handle:
        data = json.load(handle)
    if isinstance(data, dict) and isinstance(data.get("abi"), list):
        data = data["abi"]
    if not isinstance(data, list):
        raise ValueError(f"ABI file {path} is neither a JSON array nor an artifact with 'abi'")
    return data


def event_abi(abi: list[dict[str, Any]], kind: EventKind) -> dict[str, Any]:
    """Return the ABI entry for event ``kind``."""
    for entry in abi:
        if entry.get("type") == "event" and entry.get("name") == kind.value:
            return entry
    raise ValueError(f"ABI does not declare event {kind.value}")


def _canonical_type(param: dict[str, Any]) -> str:
    """Expand tuple parameters into their ``(a,b)`` signature form."""
    kind = param["type"]
    if kind.startswith("tuple"):
        inner = ",".join(_canonical_type(c) for c in param.get("components", []))
        return f"({inner}){kind[len('tuple'):]}"
    return kind


def event_topic(abi: list[dict[str, Any]], kind: EventKind) -> str:
    """Return topic0 (keccak of the event signature) as ``0x`` hex."""
    entry = event_abi(abi, kind)
    signature = f"{entry['name']}({','.join(_canonical_type(p) for p in entry['inputs'])})"
    return Web3.to_hex(Web3.keccak(text=signature))
