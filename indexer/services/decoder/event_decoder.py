"""
Event decoder.

Maps raw ``eth_getLogs`` entries to typed, named event records using the
events-only ABI of one contract kind.
"""

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from typing import Any

from eth_abi import decode as abi_decode
from eth_abi.exceptions import DecodingError
from hexbytes import HexBytes
from loguru import logger
from web3 import Web3

from indexer.utils.exceptions import DecodeError

from .abis import ABIS, ContractKind


def to_hex(value: Any) -> str:
    """Render bytes-like or hex string values as 0x-prefixed lower hex."""
    if isinstance(value, str):
        value = value.lower()
        return value if value.startswith("0x") else f"0x{value}"
    return "0x" + bytes(value).hex()


def _to_bytes(value: Any) -> bytes:
    if isinstance(value, str):
        return bytes(HexBytes(value))
    return bytes(value)


def _to_int(value: Any) -> int:
    if isinstance(value, str):
        return int(value, 16) if value.startswith("0x") else int(value)
    return int(value)


def event_signature(event_abi: dict) -> str:
    """Canonical signature, e.g. ``Deposit(address,uint256,uint256)``."""
    types = ",".join(i["type"] for i in event_abi["inputs"])
    return f"{event_abi['name']}({types})"


def event_topic(event_abi: dict) -> str:
    """topic0 (keccak of the canonical signature) as 0x-prefixed hex."""
    return to_hex(Web3.keccak(text=event_signature(event_abi)))


@dataclass(frozen=True)
class DecodedEvent:
    """Typed event record decoded from a raw log."""

    name: str
    args: dict[str, Any]
    address: str
    block_number: int
    tx_hash: str
    log_index: int = 0
    contract: ContractKind | None = field(default=None, compare=False)

    @property
    def event_id(self) -> str:
        """Natural identity of the log: ``{txHash}-{logIndex}``."""
        return f"{self.tx_hash}-{self.log_index}"


class EventDecoder:
    """
    Decoder for one contract kind.

    Builds a topic0 -> event ABI table once; ``decode`` is stateless.
    """

    def __init__(self, kind: ContractKind):
        """
        Initialize decoder.

        Args:
            kind: Contract kind whose ABI is used
        """
        self.kind = kind
        self._events: dict[str, dict] = {
            event_topic(abi): abi for abi in ABIS[kind]
        }

    @property
    def topics(self) -> list[str]:
        """Known topic0 values, usable as an ``eth_getLogs`` topic filter."""
        return list(self._events)

    def topic_for(self, name: str) -> str:
        """Return topic0 for an event name."""
        for topic, abi in self._events.items():
            if abi["name"] == name:
                return topic
        raise KeyError(name)

    def decode(self, raw_log: dict[str, Any]) -> DecodedEvent:
        """
        Decode one raw log.

        Args:
            raw_log: Log entry with address, topics, data, blockNumber,
                transactionHash and optionally logIndex

        Returns:
            DecodedEvent

        Raises:
            DecodeError: Unknown topic0 or malformed topics/data
        """
        try:
            topics = [to_hex(t) for t in raw_log["topics"]]
        except (KeyError, TypeError, ValueError) as e:
            raise DecodeError(f"Malformed log topics: {e}") from e

        if not topics:
            raise DecodeError("Log has no topics (anonymous event)")

        event_abi = self._events.get(topics[0])
        if event_abi is None:
            raise DecodeError(
                f"Unknown {self.kind.value} event topic {topics[0]}"
            )

        name = event_abi["name"]
        indexed = [i for i in event_abi["inputs"] if i["indexed"]]
        plain = [i for i in event_abi["inputs"] if not i["indexed"]]

        if len(topics) - 1 != len(indexed):
            raise DecodeError(
                f"{name}: expected {len(indexed)} indexed topics, "
                f"got {len(topics) - 1}"
            )

        try:
            args: dict[str, Any] = {}
            for inp, topic in zip(indexed, topics[1:]):
                (args[inp["name"]],) = abi_decode([inp["type"]], _to_bytes(topic))

            values = abi_decode(
                [i["type"] for i in plain], _to_bytes(raw_log.get("data", b""))
            )
            for inp, value in zip(plain, values):
                args[inp["name"]] = value

            return DecodedEvent(
                name=name,
                args=args,
                address=str(raw_log.get("address", "")).lower(),
                block_number=_to_int(raw_log["blockNumber"]),
                tx_hash=to_hex(raw_log["transactionHash"]),
                log_index=_to_int(raw_log.get("logIndex", 0)),
                contract=self.kind,
            )
        except (DecodingError, KeyError, TypeError, ValueError) as e:
            raise DecodeError(f"{name}: failed to decode log: {e}") from e

    def decode_many(
        self, raw_logs: Iterable[dict[str, Any]]
    ) -> Iterator[DecodedEvent]:
        """Decode logs, logging and dropping the ones that fail."""
        for raw_log in raw_logs:
            try:
                yield self.decode(raw_log)
            except DecodeError as e:
                logger.warning(f"[Decoder] Dropping {self.kind.value} log: {e}")
