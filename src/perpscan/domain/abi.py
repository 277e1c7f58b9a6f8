"""Event and function ABI fragments for the perps market contract.

Only the pieces the query pipeline touches are described here: the topic0
of each event kind, which arguments are indexed (sliced straight out of the
topics), and the types of the non-indexed tail that eth_abi decodes from
`data`.
"""
from __future__ import annotations

from dataclasses import dataclass

from eth_utils import event_signature_to_log_topic, function_signature_to_4byte_selector

from .value_types import ContractName, EventKind, Topic0


@dataclass(slots=True, frozen=True)
class EventABI:
    kind: EventKind
    contract: ContractName
    signature: str
    indexed: tuple[str, ...]      # names, in topic order (topics[1:])
    data_types: tuple[str, ...]   # non-indexed tail, in declaration order

    @property
    def topic0(self) -> Topic0:
        return Topic0("0x" + event_signature_to_log_topic(self.signature).hex())

    @property
    def filter_name(self) -> str:
        """Name of the binding call that filters this event, e.g. FilterOrderSettled."""
        return f"Filter{self.kind}"


@dataclass(slots=True, frozen=True)
class FunctionABI:
    name: str
    input_types: tuple[str, ...]
    output_types: tuple[str, ...]

    @property
    def signature(self) -> str:
        return f"{self.name}({','.join(self.input_types)})"

    @property
    def selector(self) -> bytes:
        return function_signature_to_4byte_selector(self.signature)

    @property
    def call_name(self) -> str:
        """Binding-style name used to label RPC failures, e.g. GetOpenPosition."""
        return self.name[0].upper() + self.name[1:]


ORDER_SETTLED = EventABI(
    kind="OrderSettled",
    contract="perps_market",
    signature="OrderSettled(uint128,uint128,uint256,int256,int256,int128,int128,"
              "uint256,uint256,uint256,uint256,bytes32,address)",
    indexed=("marketId", "accountId", "trackingCode"),
    data_types=("uint256", "int256", "int256", "int128", "int128",
                "uint256", "uint256", "uint256", "uint256", "address"),
)

ORDER_COMMITTED = EventABI(
    kind="OrderCommitted",
    contract="perps_market",
    signature="OrderCommitted(uint128,uint128,uint8,int128,uint256,uint256,uint256,bytes32,address)",
    indexed=("marketId", "accountId", "trackingCode"),
    data_types=("uint8", "int128", "uint256", "uint256", "uint256", "address"),
)

MARKET_UPDATED = EventABI(
    kind="MarketUpdated",
    contract="perps_market",
    signature="MarketUpdated(uint128,uint256,int256,uint256,int256,int256,int256)",
    indexed=(),
    data_types=("uint128", "uint256", "int256", "uint256", "int256", "int256", "int256"),
)

POSITION_LIQUIDATED = EventABI(
    kind="PositionLiquidated",
    contract="perps_market",
    signature="PositionLiquidated(uint128,uint128,uint256,int128)",
    indexed=("accountId", "marketId"),
    data_types=("uint256", "int128"),
)

ACCOUNT_CREATED = EventABI(
    kind="AccountCreated",
    contract="perps_market",
    signature="AccountCreated(uint128,address)",
    indexed=("accountId", "owner"),
    data_types=(),
)

EVENTS: dict[EventKind, EventABI] = {
    e.kind: e for e in (ORDER_SETTLED, ORDER_COMMITTED, MARKET_UPDATED, POSITION_LIQUIDATED, ACCOUNT_CREATED)
}

GET_ACCOUNT_OWNER = FunctionABI("getAccountOwner", ("uint128",), ("address",))
GET_ACCOUNT_LAST_INTERACTION = FunctionABI("getAccountLastInteraction", ("uint128",), ("uint256",))
GET_ACCOUNT_PERMISSIONS = FunctionABI("getAccountPermissions", ("uint128",), ("(address,bytes32[])[]",))
GET_OPEN_POSITION = FunctionABI("getOpenPosition", ("uint128", "uint128"), ("int256", "int256", "int128"))
GET_MARKET_METADATA = FunctionABI("getMarketMetadata", ("uint128",), ("string", "string"))


def event_for_topic0(topic0: str | None) -> EventABI | None:
    if topic0 is None:
        return None
    t0 = topic0.lower()
    for ev in EVENTS.values():
        if ev.topic0 == t0:
            return ev
    return None
