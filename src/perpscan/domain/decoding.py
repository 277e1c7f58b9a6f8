from __future__ import annotations

from eth_abi import decode as abi_decode
from eth_abi.exceptions import DecodingError
from eth_utils import to_checksum_address

from ..exceptions import DecodeError
from .abi import (
    ACCOUNT_CREATED, MARKET_UPDATED, ORDER_COMMITTED, ORDER_SETTLED,
    POSITION_LIQUIDATED, EventABI, event_for_topic0,
)
from .models import EventLog, Liquidation, LogRecord, MarketUpdate, Order, Trade


# ---------- topic helpers (indexed args are single 32B words) -----------------

def _strip0x(h: str) -> str:
    return h[2:] if h[:2].lower() == "0x" else h

def _topic_word(t: str) -> bytes:
    b = bytes.fromhex(_strip0x(t))
    if len(b) != 32:
        raise ValueError(f"topic is {len(b)} bytes, expected 32")
    return b

def _u_from_topic(t: str) -> int:
    return int.from_bytes(_topic_word(t), "big")

def _addr_from_topic(t: str) -> str:
    return to_checksum_address("0x" + _topic_word(t)[-20:].hex())

def _bytes32_from_topic(t: str) -> str:
    return "0x" + _topic_word(t).hex()

def _data_bytes(data_hex: str) -> bytes:
    h = _strip0x(data_hex or "0x")
    if len(h) % 2: h = "0" + h
    return bytes.fromhex(h) if h else b""


def _split(ev: EventABI, log: EventLog) -> tuple[list[str], tuple]:
    """Validate topic shape and decode the data tail; raise DecodeError on mismatch."""
    if log.topic0 != ev.topic0:
        raise DecodeError(ev.kind, log.log_index, f"topic0 {log.topic0} is not {ev.signature}")
    indexed = list(log.topics[1:])
    if len(indexed) != len(ev.indexed):
        raise DecodeError(ev.kind, log.log_index,
                          f"expected {len(ev.indexed)} indexed topics, got {len(indexed)}")
    try:
        values = abi_decode(list(ev.data_types), _data_bytes(log.data_hex)) if ev.data_types else ()
    except (DecodingError, ValueError) as e:
        raise DecodeError(ev.kind, log.log_index, str(e)) from e
    return indexed, tuple(values)


# ---------- per-kind decoders ----------------------------------------------------

def decode_trade(log: EventLog, block_timestamp: int) -> Trade:
    topics, d = _split(ORDER_SETTLED, log)
    try:
        market_id, account_id, tracking = _u_from_topic(topics[0]), _u_from_topic(topics[1]), _bytes32_from_topic(topics[2])
    except ValueError as e:
        raise DecodeError(ORDER_SETTLED.kind, log.log_index, str(e)) from e
    return Trade(
        market_id=market_id, account_id=account_id,
        fill_price=d[0], pnl=d[1], accrued_funding=d[2], size_delta=d[3], new_size=d[4],
        total_fees=d[5], referral_fees=d[6], collected_fees=d[7], settlement_reward=d[8],
        tracking_code=tracking, settler=to_checksum_address(d[9]),
        block_number=log.block_number, tx_hash=log.tx_hash, log_index=log.log_index,
        block_timestamp=block_timestamp,
    )

def decode_order(log: EventLog, block_timestamp: int) -> Order:
    topics, d = _split(ORDER_COMMITTED, log)
    try:
        market_id, account_id, tracking = _u_from_topic(topics[0]), _u_from_topic(topics[1]), _bytes32_from_topic(topics[2])
    except ValueError as e:
        raise DecodeError(ORDER_COMMITTED.kind, log.log_index, str(e)) from e
    return Order(
        market_id=market_id, account_id=account_id,
        order_type=d[0], size_delta=d[1], acceptable_price=d[2],
        settlement_time=d[3], expiration_time=d[4],
        tracking_code=tracking, sender=to_checksum_address(d[5]),
        block_number=log.block_number, tx_hash=log.tx_hash, log_index=log.log_index,
        block_timestamp=block_timestamp,
    )

def decode_market_update(log: EventLog, block_timestamp: int) -> MarketUpdate:
    _, d = _split(MARKET_UPDATED, log)
    return MarketUpdate(
        market_id=d[0], price=d[1], skew=d[2], size=d[3], size_delta=d[4],
        current_funding_rate=d[5], current_funding_velocity=d[6],
        block_number=log.block_number, tx_hash=log.tx_hash, log_index=log.log_index,
        block_timestamp=block_timestamp,
    )

def decode_liquidation(log: EventLog, block_timestamp: int) -> Liquidation:
    topics, d = _split(POSITION_LIQUIDATED, log)
    try:
        account_id, market_id = _u_from_topic(topics[0]), _u_from_topic(topics[1])
    except ValueError as e:
        raise DecodeError(POSITION_LIQUIDATED.kind, log.log_index, str(e)) from e
    return Liquidation(
        account_id=account_id, market_id=market_id,
        amount_liquidated=d[0], current_position_size=d[1],
        block_number=log.block_number, tx_hash=log.tx_hash, log_index=log.log_index,
        block_timestamp=block_timestamp,
    )

def decode_account_created(log: EventLog) -> tuple[int, str]:
    """Return (account_id, owner) from an AccountCreated log."""
    topics, _ = _split(ACCOUNT_CREATED, log)
    try:
        return _u_from_topic(topics[0]), _addr_from_topic(topics[1])
    except ValueError as e:
        raise DecodeError(ACCOUNT_CREATED.kind, log.log_index, str(e)) from e


_DECODERS = {
    ORDER_SETTLED.kind: decode_trade,
    ORDER_COMMITTED.kind: decode_order,
    MARKET_UPDATED.kind: decode_market_update,
    POSITION_LIQUIDATED.kind: decode_liquidation,
}

def decode_log(log: EventLog, block_timestamp: int) -> LogRecord:
    """Dispatch on topic0 to the matching decoder."""
    ev = event_for_topic0(log.topic0)
    if ev is None or ev.kind not in _DECODERS:
        raise DecodeError(ev.kind if ev else "unknown", log.log_index, f"no record decoder for topic0 {log.topic0}")
    return _DECODERS[ev.kind](log, block_timestamp)


def decode_permission_name(word: bytes) -> str:
    """bytes32 permission ids are right-padded ASCII (e.g. b"ADMIN\\x00...")."""
    return word.rstrip(b"\x00").decode("ascii", errors="replace")
