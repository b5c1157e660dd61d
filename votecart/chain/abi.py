"""ABI fragments for the MultiVault and Multicall3 contracts.

Only the functions and events the gateway uses are declared.
"""

from __future__ import annotations

from typing import Any


def _fn(name: str, inputs: list[tuple[str, str]], outputs: list[tuple[str, str]], mutability: str) -> dict[str, Any]:
    return {
        "type": "function",
        "name": name,
        "stateMutability": mutability,
        "inputs": [{"name": n, "type": t} for n, t in inputs],
        "outputs": [{"name": n, "type": t} for n, t in outputs],
    }


MULTIVAULT_ABI: list[dict[str, Any]] = [
    _fn("getTripleCost", [], [("", "uint256")], "view"),
    _fn("getAtomCost", [], [("", "uint256")], "view"),
    {
        "type": "function",
        "name": "getGeneralConfig",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [
            {
                "name": "",
                "type": "tuple",
                "components": [
                    {"name": "admin", "type": "address"},
                    {"name": "protocolMultisig", "type": "address"},
                    {"name": "feeDenominator", "type": "uint256"},
                    {"name": "trustBonding", "type": "address"},
                    {"name": "minDeposit", "type": "uint256"},
                    {"name": "minShare", "type": "uint256"},
                    {"name": "atomDataMaxLength", "type": "uint256"},
                    {"name": "feeThreshold", "type": "uint256"},
                ],
            }
        ],
    },
    _fn(
        "getVault",
        [("termId", "bytes32"), ("curveId", "uint256")],
        [("totalAssets", "uint256"), ("totalShares", "uint256")],
        "view",
    ),
    _fn(
        "getShares",
        [("account", "address"), ("termId", "bytes32"), ("curveId", "uint256")],
        [("", "uint256")],
        "view",
    ),
    _fn("getCounterIdFromTripleId", [("tripleId", "bytes32")], [("", "bytes32")], "pure"),
    _fn(
        "previewDeposit",
        [("termId", "bytes32"), ("curveId", "uint256"), ("assets", "uint256")],
        [("shares", "uint256"), ("assetsAfterFees", "uint256")],
        "view",
    ),
    _fn(
        "previewRedeem",
        [("termId", "bytes32"), ("curveId", "uint256"), ("shares", "uint256")],
        [("assetsAfterFees", "uint256"), ("sharesUsed", "uint256")],
        "view",
    ),
    _fn("createAtoms", [("data", "bytes[]"), ("assets", "uint256[]")], [("", "bytes32[]")], "payable"),
    _fn(
        "createTriples",
        [
            ("subjectIds", "bytes32[]"),
            ("predicateIds", "bytes32[]"),
            ("objectIds", "bytes32[]"),
            ("assets", "uint256[]"),
        ],
        [("", "bytes32[]")],
        "payable",
    ),
    _fn(
        "depositBatch",
        [
            ("receiver", "address"),
            ("termIds", "bytes32[]"),
            ("curveIds", "uint256[]"),
            ("assets", "uint256[]"),
            ("minShares", "uint256[]"),
        ],
        [("", "uint256[]")],
        "payable",
    ),
    _fn(
        "redeemBatch",
        [
            ("receiver", "address"),
            ("termIds", "bytes32[]"),
            ("curveIds", "uint256[]"),
            ("shares", "uint256[]"),
            ("minAssets", "uint256[]"),
        ],
        [("", "uint256[]")],
        "nonpayable",
    ),
    {
        "type": "event",
        "name": "AtomCreated",
        "anonymous": False,
        "inputs": [
            {"name": "creator", "type": "address", "indexed": True},
            {"name": "termId", "type": "bytes32", "indexed": True},
            {"name": "atomData", "type": "bytes", "indexed": False},
            {"name": "atomWallet", "type": "address", "indexed": False},
        ],
    },
    {
        "type": "event",
        "name": "TripleCreated",
        "anonymous": False,
        "inputs": [
            {"name": "creator", "type": "address", "indexed": True},
            {"name": "termId", "type": "bytes32", "indexed": True},
            {"name": "subjectId", "type": "bytes32", "indexed": False},
            {"name": "predicateId", "type": "bytes32", "indexed": False},
            {"name": "objectId", "type": "bytes32", "indexed": False},
        ],
    },
]

MULTICALL3_ABI: list[dict[str, Any]] = [
    {
        "type": "function",
        "name": "aggregate3",
        "stateMutability": "payable",
        "inputs": [
            {
                "name": "calls",
                "type": "tuple[]",
                "components": [
                    {"name": "target", "type": "address"},
                    {"name": "allowFailure", "type": "bool"},
                    {"name": "callData", "type": "bytes"},
                ],
            }
        ],
        "outputs": [
            {
                "name": "returnData",
                "type": "tuple[]",
                "components": [
                    {"name": "success", "type": "bool"},
                    {"name": "returnData", "type": "bytes"},
                ],
            }
        ],
    }
]
