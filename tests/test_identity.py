from dataclasses import replace

import pytest
from eth_abi import encode
from eth_utils import keccak

from nitrolite_client.identity import (
    generate_channel_metadata,
    get_channel_id,
    get_legacy_channel_id,
)
from nitrolite_client.states import LegacyChannel
from nitrolite_libs.exceptions import InvalidParameterError
from nitrolite_libs.types import ChainID
from tests.constants import TEST_CHAIN_ID
from tests.mocks.web3 import make_address


def test_channel_id_matches_abi_encoding(channel_definition):
    expected = keccak(
        encode(
            ["uint32", "address", "address", "uint64", "bytes32", "uint256"],
            [
                channel_definition.challenge_duration,
                channel_definition.user,
                channel_definition.node,
                channel_definition.nonce,
                channel_definition.metadata,
                TEST_CHAIN_ID,
            ],
        )
    )
    assert get_channel_id(channel_definition, TEST_CHAIN_ID) == expected


def test_channel_id_is_stable(channel_definition):
    channel_id = get_channel_id(channel_definition, TEST_CHAIN_ID)
    assert len(channel_id) == 32
    assert get_channel_id(replace(channel_definition), TEST_CHAIN_ID) == channel_id


@pytest.mark.parametrize(
    "changes",
    [
        {"challenge_duration": 3601},
        {"user": "0x" + "11" * 20},
        {"node": "0x" + "22" * 20},
        {"nonce": 43},
        {"metadata": bytes([1] * 32)},
    ],
)
def test_channel_id_changes_with_every_field(channel_definition, changes):
    original = get_channel_id(channel_definition, TEST_CHAIN_ID)
    assert get_channel_id(replace(channel_definition, **changes), TEST_CHAIN_ID) != original


def test_channel_id_depends_on_chain(channel_definition):
    assert get_channel_id(channel_definition, ChainID(1)) != get_channel_id(
        channel_definition, ChainID(137)
    )


def test_channel_id_rejects_out_of_range_values(channel_definition):
    with pytest.raises(InvalidParameterError):
        get_channel_id(replace(channel_definition, challenge_duration=2 ** 32), TEST_CHAIN_ID)
    with pytest.raises(InvalidParameterError):
        get_channel_id(replace(channel_definition, nonce=-1), TEST_CHAIN_ID)
    with pytest.raises(InvalidParameterError):
        get_channel_id(replace(channel_definition, metadata=b"short"), TEST_CHAIN_ID)


def test_legacy_channel_id():
    participants = (make_address(), make_address())
    adjudicator = make_address()
    channel = LegacyChannel(
        participants=participants, adjudicator=adjudicator, challenge=3600, nonce=1
    )

    expected = keccak(
        encode(
            ["address[2]", "address", "uint64", "uint64"],
            [list(participants), adjudicator, 3600, 1],
        )
    )
    assert get_legacy_channel_id(channel) == expected
    assert get_legacy_channel_id(replace(channel, nonce=2)) != expected
    assert get_legacy_channel_id(replace(channel, participants=participants[::-1])) != expected


def test_legacy_channel_id_needs_two_participants():
    channel = LegacyChannel(
        participants=(make_address(),), adjudicator=make_address(), challenge=3600, nonce=1
    )
    with pytest.raises(InvalidParameterError):
        get_legacy_channel_id(channel)


def test_generate_channel_metadata():
    metadata = generate_channel_metadata("usdc")
    assert len(metadata) == 32
    assert metadata[:8] == keccak(text="usdc")[:8]
    assert metadata[8:] == bytes(24)
    assert generate_channel_metadata("eth") != metadata
