"""Canonical encoding of channel states

The byte layout produced here is what the custody contract hashes when it
verifies signatures, so any change breaks every signature in circulation.
Signatures are never part of the encoding.
"""
from typing import Any, Tuple

from eth_abi import encode
from eth_utils import is_address, keccak

from nitrolite_client.constants import CHALLENGE_DISCRIMINATOR
from nitrolite_client.states import Ledger, State, StateV0, StateV1
from nitrolite_libs.constants import (
    INT256_MAX,
    INT256_MIN,
    UINT8_MAX,
    UINT64_MAX,
    UINT256_MAX,
)
from nitrolite_libs.exceptions import InvalidParameterError
from nitrolite_libs.types import ChannelID, StateHash

LEDGER_ABI_TYPE = "(uint64,address,uint8,uint256,int256,uint256,int256)"
ALLOCATION_ABI_TYPE = "(address,address,uint256)"

SIGNING_DATA_ABI_TYPES = ["uint64", "uint8", "bytes32", LEDGER_ABI_TYPE, LEDGER_ABI_TYPE]
STATE_V1_ABI_TYPES = ["bytes32", "bytes"]
STATE_V0_ABI_TYPES = ["bytes32", "bytes", f"{ALLOCATION_ABI_TYPE}[2]"]


def check_uint(name: str, value: Any, max_value: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= max_value:
        raise InvalidParameterError(f"`{name}` is out of range", field=name, value=value)


def check_int256(name: str, value: Any) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidParameterError(f"`{name}` is not an integer", field=name, value=value)
    if not INT256_MIN <= value <= INT256_MAX:
        raise InvalidParameterError(f"`{name}` is out of range", field=name, value=value)


def check_bytes32(name: str, value: Any) -> None:
    if not isinstance(value, bytes) or len(value) != 32:
        raise InvalidParameterError(f"`{name}` must be 32 bytes", field=name, value=value)


def check_address(name: str, value: Any) -> None:
    if not isinstance(value, str) or not is_address(value):
        raise InvalidParameterError(f"`{name}` is not an address", field=name, value=value)


def _ledger_tuple(name: str, ledger: Ledger) -> Tuple:
    check_uint(f"{name}.chain_id", ledger.chain_id, UINT64_MAX)
    check_address(f"{name}.token", ledger.token)
    check_uint(f"{name}.decimals", ledger.decimals, UINT8_MAX)
    check_uint(f"{name}.user_allocation", ledger.user_allocation, UINT256_MAX)
    check_int256(f"{name}.user_net_flow", ledger.user_net_flow)
    check_uint(f"{name}.node_allocation", ledger.node_allocation, UINT256_MAX)
    check_int256(f"{name}.node_net_flow", ledger.node_net_flow)
    return (
        ledger.chain_id,
        ledger.token,
        ledger.decimals,
        ledger.user_allocation,
        ledger.user_net_flow,
        ledger.node_allocation,
        ledger.node_net_flow,
    )


def get_signing_data(state: StateV1) -> bytes:
    """The state fields the contract signs over, without the channel id"""
    check_uint("version", state.version, UINT64_MAX)
    check_uint("intent", int(state.intent), UINT8_MAX)
    check_bytes32("metadata", state.metadata)
    return encode(
        SIGNING_DATA_ABI_TYPES,
        [
            state.version,
            int(state.intent),
            state.metadata,
            _ledger_tuple("home_state", state.home_state),
            _ledger_tuple("non_home_state", state.non_home_state),
        ],
    )


def _pack_state_v1(channel_id: ChannelID, signing_data: bytes) -> bytes:
    # the signing data is wrapped as dynamic `bytes`, not inlined
    return encode(STATE_V1_ABI_TYPES, [channel_id, signing_data])


def _pack_state_v0(channel_id: ChannelID, state: StateV0) -> bytes:
    if len(state.allocations) != 2:
        raise InvalidParameterError(
            "Legacy states carry exactly two allocations", allocations=state.allocations
        )
    if not isinstance(state.data, bytes):
        raise InvalidParameterError("State data must be bytes", data=state.data)

    allocations = []
    for index, allocation in enumerate(state.allocations):
        check_address(f"allocations[{index}].destination", allocation.destination)
        check_address(f"allocations[{index}].token", allocation.token)
        check_uint(f"allocations[{index}].amount", allocation.amount, UINT256_MAX)
        allocations.append((allocation.destination, allocation.token, allocation.amount))

    return encode(STATE_V0_ABI_TYPES, [channel_id, state.data, allocations])


def get_packed_state(channel_id: ChannelID, state: State) -> bytes:
    check_bytes32("channel_id", channel_id)
    if isinstance(state, StateV1):
        return _pack_state_v1(channel_id, get_signing_data(state))
    if isinstance(state, StateV0):
        return _pack_state_v0(channel_id, state)
    raise InvalidParameterError("Unknown state type", state_type=type(state).__name__)


def get_state_hash(channel_id: ChannelID, state: State) -> StateHash:
    return StateHash(keccak(get_packed_state(channel_id, state)))


def get_packed_challenge_state(channel_id: ChannelID, state: State) -> bytes:
    """Packs a state for a challenge signature, which never verifies as a state signature

    Ledger states get the discriminator appended to the signing data before it
    is wrapped with the channel id. Legacy states append it to the packed state.
    """
    if isinstance(state, StateV1):
        check_bytes32("channel_id", channel_id)
        return _pack_state_v1(channel_id, get_signing_data(state) + CHALLENGE_DISCRIMINATOR)
    return get_packed_state(channel_id, state) + CHALLENGE_DISCRIMINATOR


def get_challenge_hash(channel_id: ChannelID, state: State) -> StateHash:
    return StateHash(keccak(get_packed_challenge_state(channel_id, state)))
