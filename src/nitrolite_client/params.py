from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from nitrolite_client.states import ChannelDefinition, LegacyChannel, State, StateV1
from nitrolite_libs.types import Address, ChannelID, Signature


@dataclass(frozen=True)
class CreateChannelParams:
    definition: Optional[ChannelDefinition]
    initial_state: Optional[StateV1]


@dataclass(frozen=True)
class LegacyCreateChannelParams:
    # pylint: disable=too-many-instance-attributes
    adjudicator: Optional[Address]
    participants: Sequence[Address]
    allocation_amounts: Sequence[int]
    token: Address
    challenge: int
    nonce: Optional[int] = None
    state_data: Optional[bytes] = None
    server_signature: Optional[Signature] = None


@dataclass(frozen=True)
class CloseChannelParams:
    """A cooperative close, `server_signatures` were obtained from the counterparty

    When `definition` is given, the local signature goes to the slot of the
    account's role in the channel. Without it the local account is the user.
    """

    channel_id: ChannelID
    final_state: Optional[State]
    server_signatures: Tuple[Signature, ...] = ()
    state_data: Optional[bytes] = None
    proofs: Tuple[State, ...] = ()
    definition: Optional[ChannelDefinition] = None


@dataclass(frozen=True)
class ResizeChannelParams:
    channel_id: ChannelID
    resize_state: Optional[State]
    server_signatures: Tuple[Signature, ...] = ()
    state_data: Optional[bytes] = None
    proofs: Tuple[State, ...] = ()
    definition: Optional[ChannelDefinition] = None


@dataclass(frozen=True)
class ChallengeChannelParams:
    channel_id: ChannelID
    candidate_state: State
    proofs: Tuple[State, ...] = ()
    challenger_sig: Optional[Signature] = None


@dataclass(frozen=True)
class CheckpointChannelParams:
    channel_id: ChannelID
    candidate_state: State
    proofs: Tuple[State, ...] = ()


@dataclass(frozen=True)
class DepositToChannelParams:
    channel_id: ChannelID
    candidate: StateV1


@dataclass(frozen=True)
class WithdrawFromChannelParams:
    channel_id: ChannelID
    candidate: StateV1


@dataclass(frozen=True)
class InitialStateResult:
    channel_id: ChannelID
    initial_state: State
    # set for legacy channels, which are created from the channel tuple
    channel: Optional[LegacyChannel] = None


@dataclass(frozen=True)
class FinalStateResult:
    channel_id: ChannelID
    final_state: State
    proofs: Tuple[State, ...]


@dataclass(frozen=True)
class ChallengeStateResult:
    channel_id: ChannelID
    candidate_state: State
    proofs: Tuple[State, ...]
    challenger_sig: Signature
