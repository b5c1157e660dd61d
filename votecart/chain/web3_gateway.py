"""web3.py implementation of the MultiVault contract gateway.

All RPC traffic goes through a RateLimitedChannel. Batched reads use
Multicall3 `aggregate3` with `allowFailure=True` so one failing element does
not fail the batch. Writes are signed by an injected signer (key management is
the caller's concern) and awaited to one confirmation.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Protocol, Sequence

from web3 import Web3
from web3.logs import DISCARD

from votecart.chain.abi import MULTICALL3_ABI, MULTIVAULT_ABI
from votecart.chain.interfaces import CallResult, TxReceipt
from votecart.chain.throttle import RateLimitedChannel
from votecart.config import ChainConfig
from votecart.errors import TransactionFailedError
from votecart.types import ContractConfig

logger = logging.getLogger(__name__)

_MIN_DEPOSIT_INDEX = 4  # GeneralConfig.minDeposit


class TransactionSigner(Protocol):
    """Anything that can sign a transaction dict (e.g. an eth_account LocalAccount)."""

    address: str

    def sign_transaction(self, transaction_dict: dict[str, Any]) -> Any:
        ...


def _to_bytes32(term_id: str) -> bytes:
    raw = Web3.to_bytes(hexstr=term_id)
    if len(raw) > 32:
        raise ValueError(f"term id {term_id} is longer than 32 bytes")
    return raw.rjust(32, b"\0")


def _output_types(function_name: str) -> list[str]:
    for entry in MULTIVAULT_ABI:
        if entry.get("type") == "function" and entry["name"] == function_name:
            return [output["type"] for output in entry["outputs"]]
    raise KeyError(f"{function_name} is not in the MultiVault ABI")


class Web3MultiVaultGateway:
    """ContractGateway backed by a JSON-RPC endpoint."""

    def __init__(
        self,
        *,
        config: ChainConfig,
        channel: Optional[RateLimitedChannel] = None,
        signer: Optional[TransactionSigner] = None,
        w3: Optional[Web3] = None,
    ) -> None:
        self._config = config
        self._w3 = w3 or Web3(Web3.HTTPProvider(config.rpc_url))
        self._channel = channel or RateLimitedChannel()
        self._signer = signer
        self._contract = self._w3.eth.contract(
            address=Web3.to_checksum_address(config.multivault_address), abi=MULTIVAULT_ABI
        )
        self._multicall = self._w3.eth.contract(
            address=Web3.to_checksum_address(config.multicall_address), abi=MULTICALL3_ABI
        )

    # ---- reads -------------------------------------------------------------

    def _read(self, function_name: str, *args: Any) -> Any:
        fn = getattr(self._contract.functions, function_name)(*args)
        return self._channel.call(fn.call)

    def get_contract_config(self) -> ContractConfig:
        triple_cost = int(self._read("getTripleCost"))
        atom_cost = int(self._read("getAtomCost"))
        general = self._read("getGeneralConfig")
        return ContractConfig(
            triple_base_cost=triple_cost,
            min_deposit=int(general[_MIN_DEPOSIT_INDEX]),
            atom_base_cost=atom_cost,
        )

    def get_balance(self, owner: str) -> int:
        return int(self._channel.call(self._w3.eth.get_balance, Web3.to_checksum_address(owner)))

    def get_vault(self, term_id: str, curve_id: int) -> tuple[int, int]:
        total_assets, total_shares = self._read("getVault", _to_bytes32(term_id), int(curve_id))
        return int(total_assets), int(total_shares)

    def get_shares(self, owner: str, term_id: str, curve_id: int) -> int:
        return int(self._read("getShares", Web3.to_checksum_address(owner), _to_bytes32(term_id), int(curve_id)))

    def get_counter_term_id(self, term_id: str) -> str:
        return Web3.to_hex(self._read("getCounterIdFromTripleId", _to_bytes32(term_id)))

    def multicall(self, function_name: str, args_list: Sequence[tuple[Any, ...]]) -> list[CallResult]:
        if not args_list:
            return []
        output_types = _output_types(function_name)
        target = self._contract.address
        calls = []
        for args in args_list:
            encoded_args = [_to_bytes32(a) if i == 0 else a for i, a in enumerate(args)]
            calls.append((target, True, self._contract.encode_abi(function_name, args=encoded_args)))

        raw = self._channel.call(self._multicall.functions.aggregate3(calls).call)

        results: list[CallResult] = []
        for success, data in raw:
            if not success or not data:
                results.append(CallResult(success=False))
                continue
            try:
                decoded = self._w3.codec.decode(output_types, data)
            except Exception as exc:
                logger.debug("Could not decode %s result: %s", function_name, exc)
                results.append(CallResult(success=False))
                continue
            value = decoded[0] if len(decoded) == 1 else tuple(decoded)
            results.append(CallResult(success=True, value=value))
        return results

    # ---- writes ------------------------------------------------------------

    def _require_signer(self) -> TransactionSigner:
        if self._signer is None:
            raise RuntimeError("A transaction signer is required for write calls")
        return self._signer

    def _send(self, fn: Any, *, value: int, label: str) -> Any:
        signer = self._require_signer()
        sender = Web3.to_checksum_address(signer.address)
        nonce = self._channel.call(self._w3.eth.get_transaction_count, sender, "pending")
        tx = self._channel.call(fn.build_transaction, {"from": sender, "value": int(value), "nonce": nonce})
        signed = signer.sign_transaction(tx)
        tx_hash = self._channel.call(self._w3.eth.send_raw_transaction, signed.raw_transaction)
        logger.info("%s submitted: %s", label, Web3.to_hex(tx_hash))
        receipt = self._channel.call(
            self._w3.eth.wait_for_transaction_receipt, tx_hash, timeout=self._config.receipt_timeout
        )
        hex_hash = Web3.to_hex(tx_hash)
        if receipt["status"] != 1:
            raise TransactionFailedError(f"{label} reverted", tx_hash=hex_hash)
        logger.info("%s confirmed in block %s", label, receipt["blockNumber"])
        return receipt

    def _term_ids_from(self, receipt: Any, event_name: str) -> tuple[str, ...]:
        event = getattr(self._contract.events, event_name)()
        logs = event.process_receipt(receipt, errors=DISCARD)
        return tuple(Web3.to_hex(log["args"]["termId"]) for log in logs)

    def create_atoms(self, data: Sequence[bytes], assets: Sequence[int]) -> TxReceipt:
        fn = self._contract.functions.createAtoms(list(data), [int(a) for a in assets])
        receipt = self._send(fn, value=sum(assets), label="createAtoms")
        return TxReceipt(
            tx_hash=Web3.to_hex(receipt["transactionHash"]),
            block_number=receipt["blockNumber"],
            term_ids=self._term_ids_from(receipt, "AtomCreated"),
        )

    def create_triples(
        self,
        subject_ids: Sequence[str],
        predicate_ids: Sequence[str],
        object_ids: Sequence[str],
        assets: Sequence[int],
    ) -> TxReceipt:
        fn = self._contract.functions.createTriples(
            [_to_bytes32(i) for i in subject_ids],
            [_to_bytes32(i) for i in predicate_ids],
            [_to_bytes32(i) for i in object_ids],
            [int(a) for a in assets],
        )
        receipt = self._send(fn, value=sum(assets), label="createTriples")
        return TxReceipt(
            tx_hash=Web3.to_hex(receipt["transactionHash"]),
            block_number=receipt["blockNumber"],
            term_ids=self._term_ids_from(receipt, "TripleCreated"),
        )

    def deposit_batch(
        self,
        owner: str,
        term_ids: Sequence[str],
        curve_ids: Sequence[int],
        assets: Sequence[int],
        min_shares: Sequence[int],
    ) -> TxReceipt:
        fn = self._contract.functions.depositBatch(
            Web3.to_checksum_address(owner),
            [_to_bytes32(i) for i in term_ids],
            [int(c) for c in curve_ids],
            [int(a) for a in assets],
            [int(m) for m in min_shares],
        )
        receipt = self._send(fn, value=sum(assets), label="depositBatch")
        return TxReceipt(tx_hash=Web3.to_hex(receipt["transactionHash"]), block_number=receipt["blockNumber"])

    def redeem_batch(
        self,
        owner: str,
        term_ids: Sequence[str],
        curve_ids: Sequence[int],
        shares: Sequence[int],
        min_assets: Sequence[int],
    ) -> TxReceipt:
        fn = self._contract.functions.redeemBatch(
            Web3.to_checksum_address(owner),
            [_to_bytes32(i) for i in term_ids],
            [int(c) for c in curve_ids],
            [int(s) for s in shares],
            [int(m) for m in min_assets],
        )
        receipt = self._send(fn, value=0, label="redeemBatch")
        return TxReceipt(tx_hash=Web3.to_hex(receipt["transactionHash"]), block_number=receipt["blockNumber"])
