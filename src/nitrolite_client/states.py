from dataclasses import dataclass, field, replace
from enum import Enum, IntEnum
from typing import ClassVar, List, Tuple, Type, Union

import marshmallow
from marshmallow_dataclass import add_schema

from nitrolite_libs.constants import EMPTY_SIGNATURE
from nitrolite_libs.marshmallow import BigInteger, ChecksumAddress, HexedBytes
from nitrolite_libs.types import Address, Signature


class ProtocolVersion(Enum):
    V0 = "v0"  # two party allocation model with adjudicator
    V1 = "v1"  # home / non-home ledger model


class StateIntent(IntEnum):
    OPERATE = 0
    INITIALIZE = 1
    RESIZE = 2
    FINALIZE = 3


class ChannelStatus(IntEnum):
    VOID = 0  # not created, state version must be 0
    INITIAL = 1  # created and being funded, state version must be 0
    ACTIVE = 2
    DISPUTE = 3  # challenge period running
    FINAL = 4


class LegacyChannelStatus(IntEnum):
    VOID = 0
    PARTIAL = 1
    ACTIVE = 2
    CHALLENGED = 3
    CLOSED = 4


@add_schema
@dataclass(frozen=True)
class ChannelDefinition:
    challenge_duration: int
    user: Address = field(metadata={"marshmallow_field": ChecksumAddress()})
    node: Address = field(metadata={"marshmallow_field": ChecksumAddress()})
    nonce: int = field(metadata={"marshmallow_field": BigInteger()})
    metadata: bytes = field(metadata={"marshmallow_field": HexedBytes()})
    Schema: ClassVar[Type[marshmallow.Schema]]


@add_schema
@dataclass(frozen=True)
class LegacyChannel:
    participants: Tuple[Address, Address] = field(
        metadata={"marshmallow_field": marshmallow.fields.List(ChecksumAddress())}
    )
    adjudicator: Address = field(metadata={"marshmallow_field": ChecksumAddress()})
    challenge: int
    nonce: int = field(metadata={"marshmallow_field": BigInteger()})
    Schema: ClassVar[Type[marshmallow.Schema]]

    def __post_init__(self) -> None:
        object.__setattr__(self, "participants", tuple(self.participants))


@add_schema
@dataclass(frozen=True)
class Ledger:
    """Allocation and net flow bookkeeping for one chain"""

    # pylint: disable=too-many-instance-attributes
    chain_id: int
    token: Address = field(metadata={"marshmallow_field": ChecksumAddress()})
    decimals: int
    user_allocation: int = field(metadata={"marshmallow_field": BigInteger()})
    user_net_flow: int = field(metadata={"marshmallow_field": BigInteger()})
    node_allocation: int = field(metadata={"marshmallow_field": BigInteger()})
    node_net_flow: int = field(metadata={"marshmallow_field": BigInteger()})
    Schema: ClassVar[Type[marshmallow.Schema]]


@add_schema
@dataclass(frozen=True)
class StateV1:
    version: int
    intent: StateIntent = field(
        metadata={"marshmallow_field": marshmallow.fields.Enum(StateIntent, by_value=True)}
    )
    metadata: bytes = field(metadata={"marshmallow_field": HexedBytes()})
    home_state: Ledger
    non_home_state: Ledger
    user_sig: Signature = field(
        default=Signature(EMPTY_SIGNATURE), metadata={"marshmallow_field": HexedBytes()}
    )
    node_sig: Signature = field(
        default=Signature(EMPTY_SIGNATURE), metadata={"marshmallow_field": HexedBytes()}
    )
    protocol_version: ClassVar[ProtocolVersion] = ProtocolVersion.V1
    Schema: ClassVar[Type[marshmallow.Schema]]

    @property
    def signatures(self) -> Tuple[Signature, ...]:
        return tuple(sig for sig in (self.user_sig, self.node_sig) if sig)

    def unsigned(self) -> "StateV1":
        return replace(self, user_sig=EMPTY_SIGNATURE, node_sig=EMPTY_SIGNATURE)


@add_schema
@dataclass(frozen=True)
class Allocation:
    destination: Address = field(metadata={"marshmallow_field": ChecksumAddress()})
    token: Address = field(metadata={"marshmallow_field": ChecksumAddress()})
    amount: int = field(metadata={"marshmallow_field": BigInteger()})
    Schema: ClassVar[Type[marshmallow.Schema]]


@add_schema
@dataclass(frozen=True)
class StateV0:
    """Legacy two party state, allocations are indexed like the participants"""

    data: bytes = field(metadata={"marshmallow_field": HexedBytes()})
    allocations: Tuple[Allocation, ...] = field(
        metadata={
            "marshmallow_field": marshmallow.fields.List(
                marshmallow.fields.Nested(Allocation.Schema)
            )
        }
    )
    sigs: Tuple[Signature, ...] = field(
        default=(), metadata={"marshmallow_field": marshmallow.fields.List(HexedBytes())}
    )
    protocol_version: ClassVar[ProtocolVersion] = ProtocolVersion.V0
    Schema: ClassVar[Type[marshmallow.Schema]]

    def __post_init__(self) -> None:
        object.__setattr__(self, "allocations", tuple(self.allocations))
        object.__setattr__(self, "sigs", tuple(self.sigs))

    @property
    def signatures(self) -> Tuple[Signature, ...]:
        return self.sigs

    def unsigned(self) -> "StateV0":
        return replace(self, sigs=())


State = Union[StateV0, StateV1]


@add_schema
@dataclass(frozen=True)
class ChannelData:
    """Read-only projection of the custody contract's view of a channel"""

    definition: ChannelDefinition
    status: ChannelStatus = field(
        metadata={"marshmallow_field": marshmallow.fields.Enum(ChannelStatus)}
    )
    last_state: StateV1
    challenge_expiry: int = field(metadata={"marshmallow_field": BigInteger()})
    locked_funds: int = field(default=0, metadata={"marshmallow_field": BigInteger()})
    Schema: ClassVar[Type[marshmallow.Schema]]


def load_state(data: dict) -> State:
    """Loads a state from its JSON form, the variant is detected by its fields"""
    if "allocations" in data:
        return StateV0.Schema().load(data)
    return StateV1.Schema().load(data)


def load_states(data: List[dict]) -> List[State]:
    return [load_state(item) for item in data]
