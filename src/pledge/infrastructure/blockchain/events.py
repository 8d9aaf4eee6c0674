"""Event parsing for edition contract receipts."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

from eth_abi import decode
from eth_utils import encode_hex, keccak, to_checksum_address

logger = logging.getLogger(__name__)

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


class EventType(str, Enum):
    """Supported event types."""

    EDITION_MINTED = "EditionMinted"
    TRANSFER = "Transfer"


# Canonical signatures; topic0 is keccak256 of these
EVENT_SIGNATURES = {
    # EditionMinted(uint256 indexed campaignId, uint256 indexed tokenId,
    #               address indexed donor, uint256 editionNumber, uint256 amountPaid)
    EventType.EDITION_MINTED: "EditionMinted(uint256,uint256,address,uint256,uint256)",
    # ERC-721 Transfer(address indexed from, address indexed to, uint256 indexed tokenId)
    EventType.TRANSFER: "Transfer(address,address,uint256)",
}


@dataclass
class ParsedEvent:
    """Parsed blockchain event."""

    event_type: EventType
    tx_hash: str
    block_number: int
    log_index: int
    contract_address: str
    args: dict[str, Any]


@dataclass(frozen=True)
class MintedToken:
    """Token recovered from a mint receipt."""

    token_id: int
    edition_number: int | None = None
    campaign_id: int | None = None


def _hex(value: Any) -> str:
    """Lowercase 0x-prefixed hex for topics, hashes and data."""
    if isinstance(value, (bytes, bytearray)):
        return encode_hex(bytes(value)).lower()
    text = str(value).lower()
    return text if text.startswith("0x") else f"0x{text}"


def _topic_int(topic: Any) -> int:
    return int(_hex(topic), 16)


def _topic_address(topic: Any) -> str:
    return to_checksum_address("0x" + _hex(topic)[-40:])


class EventParser:
    """Parses edition contract event logs."""

    def __init__(self):
        """Initialize event parser."""
        self._build_topic_map()

    def _build_topic_map(self) -> None:
        """Build mapping from topic hash to event type."""
        self.topic_to_event: dict[str, EventType] = {}
        for event_type, signature in EVENT_SIGNATURES.items():
            topic = encode_hex(keccak(text=signature)).lower()
            self.topic_to_event[topic] = event_type

    def parse_log(self, log: dict[str, Any]) -> ParsedEvent | None:
        """Parse a single log entry.

        Args:
            log: Raw log entry from a receipt or eth_getLogs

        Returns:
            ParsedEvent or None if not recognized
        """
        topics = log.get("topics", [])
        if not topics:
            return None

        event_type = self.topic_to_event.get(_hex(topics[0]))
        if not event_type:
            return None

        try:
            args = self._decode_event_args(event_type, topics, log.get("data", b""))
        except Exception as e:
            logger.error(f"Failed to decode event {event_type.value}: {e}")
            return None

        address = log.get("address", "")
        return ParsedEvent(
            event_type=event_type,
            tx_hash=_hex(log.get("transactionHash", b"")),
            block_number=log.get("blockNumber", 0),
            log_index=log.get("logIndex", 0),
            contract_address=str(address).lower(),
            args=args,
        )

    def _decode_event_args(
        self, event_type: EventType, topics: list, data: Any
    ) -> dict[str, Any]:
        """Decode event arguments based on event type."""
        if isinstance(data, str):
            data = bytes.fromhex(data[2:] if data.startswith("0x") else data)

        if event_type == EventType.EDITION_MINTED:
            edition_number, amount_paid = decode(["uint256", "uint256"], bytes(data))
            return {
                "campaign_id": _topic_int(topics[1]),
                "token_id": _topic_int(topics[2]),
                "donor": _topic_address(topics[3]),
                "edition_number": edition_number,
                "amount_paid": amount_paid,
            }

        # ERC-721 Transfer has all three arguments indexed
        if len(topics) != 4:
            raise ValueError("Transfer log is not an ERC-721 transfer")
        return {
            "from": _topic_address(topics[1]),
            "to": _topic_address(topics[2]),
            "token_id": _topic_int(topics[3]),
        }

    def extract_minted_tokens(
        self, receipt: dict[str, Any], contract_address: str | None = None
    ) -> list[MintedToken]:
        """Recover minted tokens from a receipt.

        EditionMinted logs are authoritative; zero-address Transfer logs are
        used only when the receipt carries no EditionMinted entry.

        Args:
            receipt: Transaction receipt with logs
            contract_address: Only consider logs emitted by this contract

        Returns:
            Minted tokens in log order
        """
        minted: list[MintedToken] = []
        transfers: list[MintedToken] = []
        wanted = contract_address.lower() if contract_address else None

        for log in receipt.get("logs", []):
            event = self.parse_log(dict(log))
            if event is None:
                continue
            if wanted and event.contract_address != wanted:
                continue
            if event.event_type == EventType.EDITION_MINTED:
                minted.append(
                    MintedToken(
                        token_id=event.args["token_id"],
                        edition_number=event.args["edition_number"],
                        campaign_id=event.args["campaign_id"],
                    )
                )
            elif event.args["from"] == ZERO_ADDRESS:
                transfers.append(MintedToken(token_id=event.args["token_id"]))

        return minted or transfers
