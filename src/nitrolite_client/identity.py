from eth_abi import encode
from eth_utils import keccak

from nitrolite_client.codec import check_bytes32, check_uint
from nitrolite_client.states import ChannelDefinition, LegacyChannel
from nitrolite_libs.constants import UINT32_MAX, UINT64_MAX
from nitrolite_libs.exceptions import InvalidParameterError
from nitrolite_libs.types import ChainID, ChannelID


def get_channel_id(definition: ChannelDefinition, chain_id: ChainID) -> ChannelID:
    """Derives the channel identifier the custody contract uses for `definition`

    The field order and widths must match the contract's derivation exactly.
    """
    check_uint("challenge_duration", definition.challenge_duration, UINT32_MAX)
    check_uint("nonce", definition.nonce, UINT64_MAX)
    check_bytes32("metadata", definition.metadata)
    packed = encode(
        ["uint32", "address", "address", "uint64", "bytes32", "uint256"],
        [
            definition.challenge_duration,
            definition.user,
            definition.node,
            definition.nonce,
            definition.metadata,
            chain_id,
        ],
    )
    return ChannelID(keccak(packed))


def get_legacy_channel_id(channel: LegacyChannel) -> ChannelID:
    """Channel identifier of the two party protocol, which does not include the chain"""
    if len(channel.participants) != 2:
        raise InvalidParameterError(
            "Legacy channels have exactly two participants", participants=channel.participants
        )
    check_uint("challenge", channel.challenge, UINT64_MAX)
    check_uint("nonce", channel.nonce, UINT64_MAX)
    packed = encode(
        ["address[2]", "address", "uint64", "uint64"],
        [list(channel.participants), channel.adjudicator, channel.challenge, channel.nonce],
    )
    return ChannelID(keccak(packed))


def generate_channel_metadata(asset: str) -> bytes:
    """Definition metadata derived from the asset, as the node does it"""
    return keccak(text=asset)[:8].ljust(32, b"\x00")
