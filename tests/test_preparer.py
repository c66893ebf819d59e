# pylint: disable=redefined-outer-name
from dataclasses import replace
from unittest.mock import Mock

import pytest
from eth_abi import encode

from nitrolite_client.codec import get_challenge_hash, get_state_hash
from nitrolite_client.constants import MAGIC_NUMBER_OPEN
from nitrolite_client.identity import get_legacy_channel_id
from nitrolite_client.params import (
    ChallengeChannelParams,
    CloseChannelParams,
    CreateChannelParams,
    ResizeChannelParams,
)
from nitrolite_client.preparer import StatePreparer
from nitrolite_client.services import CustodyService
from nitrolite_client.signer import LocalSigner, verify_signature
from nitrolite_client.states import ChannelData, ChannelStatus, StateIntent
from nitrolite_libs.exceptions import InvalidParameterError, MissingParameterError
from tests.constants import OTHER_PRIVATE_KEY, TEST_CHAIN_ID


@pytest.fixture
def custody_mock():
    return Mock(spec=CustodyService)


@pytest.fixture
def preparer(user_signer, custody_mock) -> StatePreparer:
    return StatePreparer(signer=user_signer, chain_id=TEST_CHAIN_ID, custody=custody_mock)


def test_preparer_requires_dependencies(user_signer, custody_mock):
    with pytest.raises(MissingParameterError):
        StatePreparer(signer=None, chain_id=TEST_CHAIN_ID, custody=custody_mock)  # type: ignore
    with pytest.raises(MissingParameterError):
        StatePreparer(signer=user_signer, chain_id=TEST_CHAIN_ID, custody=None)  # type: ignore


def test_initial_state(preparer, user_signer, channel_definition, channel_id, initial_state):
    node_sig = b"\x07" * 65
    result = preparer.prepare_and_sign_initial_state(
        CreateChannelParams(
            definition=channel_definition, initial_state=replace(initial_state, node_sig=node_sig)
        )
    )

    assert result.channel_id == channel_id
    assert result.channel is None
    state_hash = get_state_hash(channel_id, initial_state)
    assert verify_signature(state_hash, result.initial_state.user_sig, user_signer.address)
    assert result.initial_state.node_sig == node_sig


def test_initial_state_requires_inputs(preparer, channel_definition, initial_state):
    with pytest.raises(MissingParameterError):
        preparer.prepare_and_sign_initial_state(
            CreateChannelParams(definition=None, initial_state=initial_state)
        )
    with pytest.raises(MissingParameterError):
        preparer.prepare_and_sign_initial_state(
            CreateChannelParams(definition=channel_definition, initial_state=None)
        )


@pytest.mark.parametrize(
    "changes", [{"intent": StateIntent.OPERATE}, {"version": 1}, {"intent": StateIntent.RESIZE}]
)
def test_initial_state_must_initialize_at_version_zero(
    preparer, user_signer, channel_definition, initial_state, changes
):
    user_signer.sign_raw_message = Mock(wraps=user_signer.sign_raw_message)
    with pytest.raises(InvalidParameterError):
        preparer.prepare_and_sign_initial_state(
            CreateChannelParams(
                definition=channel_definition, initial_state=replace(initial_state, **changes)
            )
        )
    user_signer.sign_raw_message.assert_not_called()


def test_legacy_initial_state(preparer, user_signer, legacy_params):
    result = preparer.prepare_and_sign_initial_state(legacy_params)

    assert result.channel is not None
    assert result.channel.nonce == legacy_params.nonce
    assert result.channel_id == get_legacy_channel_id(result.channel)

    state = result.initial_state
    assert state.data == encode(["uint256"], [MAGIC_NUMBER_OPEN])
    assert [a.amount for a in state.allocations] == [100, 0]
    assert [a.destination for a in state.allocations] == list(legacy_params.participants)
    assert len(state.sigs) == 1
    assert verify_signature(
        get_state_hash(result.channel_id, state), state.sigs[0], user_signer.address
    )


def test_legacy_initial_state_with_server_signature(preparer, legacy_params):
    params = replace(legacy_params, server_signature=b"\x09" * 65, state_data=b"app")
    state = preparer.prepare_and_sign_initial_state(params).initial_state
    assert state.data == b"app"
    assert state.sigs[1] == b"\x09" * 65


def test_legacy_initial_state_generates_nonce(preparer, legacy_params):
    result = preparer.prepare_and_sign_initial_state(replace(legacy_params, nonce=None))
    assert result.channel.nonce > 0


@pytest.mark.parametrize(
    "changes, error",
    [
        ({"adjudicator": None}, MissingParameterError),
        ({"participants": ["0x" + "11" * 20]}, InvalidParameterError),
        ({"allocation_amounts": [1, 2, 3]}, InvalidParameterError),
    ],
)
def test_legacy_initial_state_validation(preparer, legacy_params, changes, error):
    with pytest.raises(error):
        preparer.prepare_and_sign_initial_state(replace(legacy_params, **changes))


def test_final_state(preparer, user_signer, node_signer, channel_id, operate_state):
    final = replace(operate_state, intent=StateIntent.FINALIZE)
    node_sig = node_signer.sign_state(channel_id, final)

    result = preparer.prepare_and_sign_final_state(
        CloseChannelParams(
            channel_id=channel_id, final_state=operate_state, server_signatures=(node_sig,)
        )
    )

    state = result.final_state
    assert state.intent == StateIntent.FINALIZE
    assert state.signatures == (state.user_sig, node_sig)
    state_hash = get_state_hash(channel_id, state)
    assert verify_signature(state_hash, state.user_sig, user_signer.address)
    assert verify_signature(state_hash, state.node_sig, node_signer.address)


def test_final_state_signed_as_node(
    node_signer, user_signer, custody_mock, channel_definition, channel_id, operate_state
):
    preparer = StatePreparer(signer=node_signer, chain_id=TEST_CHAIN_ID, custody=custody_mock)
    final = replace(operate_state, intent=StateIntent.FINALIZE)
    user_sig = user_signer.sign_state(channel_id, final)

    result = preparer.prepare_and_sign_final_state(
        CloseChannelParams(
            channel_id=channel_id,
            final_state=operate_state,
            server_signatures=(user_sig,),
            definition=channel_definition,
        )
    )

    state = result.final_state
    assert state.user_sig == user_sig
    state_hash = get_state_hash(channel_id, state)
    assert verify_signature(state_hash, state.user_sig, user_signer.address)
    assert verify_signature(state_hash, state.node_sig, node_signer.address)


def test_final_state_with_user_definition(
    preparer, user_signer, channel_definition, channel_id, operate_state
):
    result = preparer.prepare_and_sign_final_state(
        CloseChannelParams(
            channel_id=channel_id,
            final_state=replace(operate_state, node_sig=b"\x05" * 65),
            definition=replace(channel_definition, user=user_signer.address.lower()),
        )
    )

    state = result.final_state
    assert state.node_sig == b"\x05" * 65
    assert verify_signature(
        get_state_hash(channel_id, state), state.user_sig, user_signer.address
    )


def test_final_state_rejects_foreign_account(
    custody_mock, channel_definition, channel_id, operate_state
):
    outsider = LocalSigner(OTHER_PRIVATE_KEY)
    outsider.sign_raw_message = Mock(wraps=outsider.sign_raw_message)
    preparer = StatePreparer(signer=outsider, chain_id=TEST_CHAIN_ID, custody=custody_mock)

    with pytest.raises(InvalidParameterError):
        preparer.prepare_and_sign_final_state(
            CloseChannelParams(
                channel_id=channel_id, final_state=operate_state, definition=channel_definition
            )
        )
    outsider.sign_raw_message.assert_not_called()


def test_final_state_rejects_other_channel_definition(
    preparer, channel_definition, channel_id, operate_state
):
    with pytest.raises(InvalidParameterError):
        preparer.prepare_and_sign_final_state(
            CloseChannelParams(
                channel_id=channel_id,
                final_state=operate_state,
                definition=replace(channel_definition, nonce=43),
            )
        )


def test_final_state_keeps_existing_node_signature(preparer, channel_id, operate_state):
    state = replace(operate_state, node_sig=b"\x05" * 65)
    result = preparer.prepare_and_sign_final_state(
        CloseChannelParams(channel_id=channel_id, final_state=state)
    )
    assert result.final_state.node_sig == b"\x05" * 65


def test_final_state_rejects_extra_signatures(preparer, channel_id, operate_state):
    with pytest.raises(InvalidParameterError):
        preparer.prepare_and_sign_final_state(
            CloseChannelParams(
                channel_id=channel_id,
                final_state=operate_state,
                server_signatures=(b"\x01" * 65, b"\x02" * 65),
            )
        )


def test_final_state_required(preparer, channel_id):
    with pytest.raises(MissingParameterError):
        preparer.prepare_and_sign_final_state(
            CloseChannelParams(channel_id=channel_id, final_state=None)
        )


def test_legacy_final_state(preparer, user_signer, channel_id, legacy_state):
    result = preparer.prepare_and_sign_final_state(
        CloseChannelParams(
            channel_id=channel_id,
            final_state=replace(legacy_state, sigs=(b"\x03" * 65,)),
            server_signatures=(b"\x04" * 65,),
            state_data=b"closing",
        )
    )

    state = result.final_state
    assert state.data == b"closing"
    assert len(state.sigs) == 2
    assert state.sigs[1] == b"\x04" * 65
    assert verify_signature(
        get_state_hash(channel_id, state), state.sigs[0], user_signer.address
    )


def test_legacy_final_state_requires_data(preparer, channel_id, legacy_state):
    with pytest.raises(MissingParameterError):
        preparer.prepare_and_sign_final_state(
            CloseChannelParams(channel_id=channel_id, final_state=legacy_state)
        )


def test_resize_state(preparer, channel_id, operate_state):
    resize = replace(operate_state, intent=StateIntent.RESIZE)
    result = preparer.prepare_and_sign_resize_state(
        ResizeChannelParams(
            channel_id=channel_id,
            resize_state=resize,
            server_signatures=(b"\x01" * 65,),
            proofs=(operate_state,),
        )
    )
    assert result.final_state.intent == StateIntent.RESIZE
    assert result.proofs == (operate_state,)
    assert len(result.final_state.signatures) == 2


def test_resize_state_signed_as_node(
    node_signer, user_signer, custody_mock, channel_definition, channel_id, operate_state
):
    preparer = StatePreparer(signer=node_signer, chain_id=TEST_CHAIN_ID, custody=custody_mock)
    resize = replace(operate_state, intent=StateIntent.RESIZE)
    user_sig = user_signer.sign_state(channel_id, resize)

    result = preparer.prepare_and_sign_resize_state(
        ResizeChannelParams(
            channel_id=channel_id,
            resize_state=replace(resize, user_sig=user_sig),
            definition=channel_definition,
        )
    )

    state = result.final_state
    assert state.user_sig == user_sig
    assert verify_signature(
        get_state_hash(channel_id, state), state.node_sig, node_signer.address
    )


def test_resize_state_requires_resize_intent(preparer, channel_id, operate_state):
    with pytest.raises(InvalidParameterError):
        preparer.prepare_and_sign_resize_state(
            ResizeChannelParams(channel_id=channel_id, resize_state=operate_state)
        )


def test_challenge_passes_through_existing_signature(
    preparer, custody_mock, channel_id, operate_state
):
    result = preparer.prepare_and_sign_challenge_state(
        ChallengeChannelParams(
            channel_id=channel_id, candidate_state=operate_state, challenger_sig=b"\x01" * 65
        )
    )
    assert result.challenger_sig == b"\x01" * 65
    custody_mock.get_channel_data.assert_not_called()


def channel_data(channel_definition, state):
    return ChannelData(
        definition=channel_definition,
        status=ChannelStatus.ACTIVE,
        last_state=state,
        challenge_expiry=0,
    )


def test_challenge_signed_by_channel_user(
    preparer, custody_mock, user_signer, channel_definition, channel_id, operate_state
):
    custody_mock.get_channel_data.return_value = channel_data(channel_definition, operate_state)

    result = preparer.prepare_and_sign_challenge_state(
        ChallengeChannelParams(channel_id=channel_id, candidate_state=operate_state)
    )

    custody_mock.get_channel_data.assert_called_once_with(channel_id)
    challenge_hash = get_challenge_hash(channel_id, operate_state)
    assert verify_signature(challenge_hash, result.challenger_sig, user_signer.address)
    assert not verify_signature(
        get_state_hash(channel_id, operate_state), result.challenger_sig, user_signer.address
    )


def test_challenge_user_match_is_case_insensitive(
    preparer, custody_mock, user_signer, channel_definition, channel_id, operate_state
):
    definition = replace(channel_definition, user=user_signer.address.lower())
    custody_mock.get_channel_data.return_value = channel_data(definition, operate_state)

    result = preparer.prepare_and_sign_challenge_state(
        ChallengeChannelParams(channel_id=channel_id, candidate_state=operate_state)
    )
    challenge_hash = get_challenge_hash(channel_id, operate_state)
    assert verify_signature(challenge_hash, result.challenger_sig, user_signer.address)


def test_challenge_uses_alternate_signer(
    node_signer, custody_mock, channel_definition, channel_id, operate_state
):
    alternate = LocalSigner(OTHER_PRIVATE_KEY)
    preparer = StatePreparer(
        signer=node_signer,
        chain_id=TEST_CHAIN_ID,
        custody=custody_mock,
        alternate_signer=alternate,
    )
    custody_mock.get_channel_data.return_value = channel_data(channel_definition, operate_state)

    result = preparer.prepare_and_sign_challenge_state(
        ChallengeChannelParams(channel_id=channel_id, candidate_state=operate_state)
    )
    challenge_hash = get_challenge_hash(channel_id, operate_state)
    assert verify_signature(challenge_hash, result.challenger_sig, alternate.address)


def test_challenge_without_alternate_signer(
    node_signer, custody_mock, channel_definition, channel_id, operate_state
):
    preparer = StatePreparer(signer=node_signer, chain_id=TEST_CHAIN_ID, custody=custody_mock)
    custody_mock.get_channel_data.return_value = channel_data(channel_definition, operate_state)

    with pytest.raises(MissingParameterError):
        preparer.prepare_and_sign_challenge_state(
            ChallengeChannelParams(channel_id=channel_id, candidate_state=operate_state)
        )


def test_legacy_challenge_signed_locally(
    preparer, custody_mock, user_signer, channel_id, legacy_state
):
    result = preparer.prepare_and_sign_challenge_state(
        ChallengeChannelParams(channel_id=channel_id, candidate_state=legacy_state)
    )

    custody_mock.get_channel_data.assert_not_called()
    challenge_hash = get_challenge_hash(channel_id, legacy_state)
    assert verify_signature(challenge_hash, result.challenger_sig, user_signer.address)
    assert result.candidate_state == legacy_state
