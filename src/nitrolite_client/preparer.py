from dataclasses import replace
from typing import Optional, Sequence, Tuple, Union

import structlog
from eth_abi import encode

from nitrolite_client.codec import get_challenge_hash
from nitrolite_client.constants import MAGIC_NUMBER_OPEN
from nitrolite_client.identity import get_channel_id, get_legacy_channel_id
from nitrolite_client.nonce import generate_channel_nonce
from nitrolite_client.params import (
    ChallengeChannelParams,
    ChallengeStateResult,
    CloseChannelParams,
    CreateChannelParams,
    FinalStateResult,
    InitialStateResult,
    LegacyCreateChannelParams,
    ResizeChannelParams,
)
from nitrolite_client.services import CustodyService
from nitrolite_client.signer import StateSigner
from nitrolite_client.states import (
    Allocation,
    ChannelDefinition,
    LegacyChannel,
    ProtocolVersion,
    State,
    StateIntent,
    StateV0,
    StateV1,
)
from nitrolite_libs.exceptions import InvalidParameterError, MissingParameterError
from nitrolite_libs.types import Address, ChainID, ChannelID, Signature

log = structlog.get_logger(__name__)


class StatePreparer:
    """Builds, hashes and signs the states the custody contract consumes

    Every flow validates its input completely before anything is signed, so a
    failure never leaves a partially signed state behind.
    """

    def __init__(
        self,
        signer: StateSigner,
        chain_id: ChainID,
        custody: CustodyService,
        account_address: Optional[Address] = None,
        alternate_signer: Optional[StateSigner] = None,
    ):
        if signer is None:
            raise MissingParameterError("A state signer is required")
        if chain_id is None:
            raise MissingParameterError("The chain id is required")
        if custody is None:
            raise MissingParameterError("The custody service is required")

        self.signer = signer
        self.chain_id = chain_id
        self.custody = custody
        self.account_address = account_address or signer.get_address()
        self.alternate_signer = alternate_signer

    def prepare_and_sign_initial_state(
        self, params: Union[CreateChannelParams, LegacyCreateChannelParams]
    ) -> InitialStateResult:
        if isinstance(params, LegacyCreateChannelParams):
            return self._prepare_legacy_initial_state(params)

        if params.definition is None:
            raise MissingParameterError("Channel definition is required")
        if params.initial_state is None:
            raise MissingParameterError("Initial state is required")

        state = params.initial_state
        if state.intent != StateIntent.INITIALIZE or state.version != 0:
            raise InvalidParameterError(
                "Initial state must have intent INITIALIZE and version 0",
                intent=state.intent.name,
                version=state.version,
            )

        channel_id = get_channel_id(params.definition, self.chain_id)
        user_sig = self.signer.sign_state(channel_id, state)
        signed_state = replace(state, user_sig=user_sig)

        log.debug("Signed initial state", channel_id=channel_id, state=signed_state)
        return InitialStateResult(channel_id=channel_id, initial_state=signed_state)

    def _prepare_legacy_initial_state(
        self, params: LegacyCreateChannelParams
    ) -> InitialStateResult:
        if not params.adjudicator:
            raise MissingParameterError("Adjudicator address is required")
        if len(params.participants) != 2:
            raise InvalidParameterError(
                "Exactly two participants are required", participants=params.participants
            )
        if len(params.allocation_amounts) != 2:
            raise InvalidParameterError(
                "Exactly two allocation amounts are required",
                allocation_amounts=params.allocation_amounts,
            )

        nonce = params.nonce
        if nonce is None:
            nonce = generate_channel_nonce(self.account_address)

        channel = LegacyChannel(
            participants=(params.participants[0], params.participants[1]),
            adjudicator=params.adjudicator,
            challenge=params.challenge,
            nonce=nonce,
        )
        channel_id = get_legacy_channel_id(channel)

        state_data = params.state_data
        if state_data is None:
            state_data = encode(["uint256"], [MAGIC_NUMBER_OPEN])

        state = StateV0(
            data=state_data,
            allocations=tuple(
                Allocation(destination=participant, token=params.token, amount=amount)
                for participant, amount in zip(params.participants, params.allocation_amounts)
            ),
        )
        local_sig = self.signer.sign_state(channel_id, state)
        sigs: Tuple[Signature, ...] = (local_sig,)
        if params.server_signature:
            sigs = (local_sig, params.server_signature)

        signed_state = replace(state, sigs=sigs)
        log.debug("Signed legacy initial state", channel_id=channel_id, state=signed_state)
        return InitialStateResult(
            channel_id=channel_id, initial_state=signed_state, channel=channel
        )

    def _is_node(self, channel_id: ChannelID, definition: Optional[ChannelDefinition]) -> bool:
        """Whether the local account signs in the node slot of a ledger state

        Without a definition the local account is taken to be the channel user.
        """
        if definition is None:
            return False

        expected_id = get_channel_id(definition, self.chain_id)
        if expected_id != channel_id:
            raise InvalidParameterError(
                "Channel definition does not match the channel id",
                channel_id=channel_id,
                expected_channel_id=expected_id,
            )

        account = self.account_address.lower()
        if account == definition.user.lower():
            return False
        if account == definition.node.lower():
            return True
        raise InvalidParameterError(
            "The account is not a participant of the channel",
            account=self.account_address,
            user=definition.user,
            node=definition.node,
        )

    def _sign_agreed_state(
        self,
        channel_id: ChannelID,
        state: State,
        server_signatures: Sequence[Signature],
        state_data: Optional[bytes],
        intent: Optional[StateIntent] = None,
        definition: Optional[ChannelDefinition] = None,
    ) -> State:
        """Signs a state both parties agreed on, local signature first"""
        if isinstance(state, StateV1):
            if len(server_signatures) > 1:
                raise InvalidParameterError(
                    "Ledger states carry a single counterparty signature",
                    server_signatures=server_signatures,
                )
            is_node = self._is_node(channel_id, definition)
            unsigned = state.unsigned()
            if intent is not None:
                unsigned = replace(unsigned, intent=intent)
            local_sig = self.signer.sign_state(channel_id, unsigned)
            if is_node:
                user_sig = server_signatures[0] if server_signatures else state.user_sig
                return replace(unsigned, user_sig=user_sig, node_sig=local_sig)
            node_sig = server_signatures[0] if server_signatures else state.node_sig
            return replace(unsigned, user_sig=local_sig, node_sig=node_sig)

        if state_data is None:
            raise MissingParameterError("State data is required for legacy states")
        unsigned_v0 = replace(state.unsigned(), data=state_data)
        local_sig = self.signer.sign_state(channel_id, unsigned_v0)
        return replace(unsigned_v0, sigs=(local_sig, *server_signatures))

    def prepare_and_sign_final_state(self, params: CloseChannelParams) -> FinalStateResult:
        if params.final_state is None:
            raise MissingParameterError("Final state is required")

        final_state = self._sign_agreed_state(
            params.channel_id,
            params.final_state,
            params.server_signatures,
            params.state_data,
            intent=StateIntent.FINALIZE,
            definition=params.definition,
        )
        log.debug("Signed final state", channel_id=params.channel_id, state=final_state)
        return FinalStateResult(
            channel_id=params.channel_id, final_state=final_state, proofs=tuple(params.proofs)
        )

    def prepare_and_sign_resize_state(self, params: ResizeChannelParams) -> FinalStateResult:
        if params.resize_state is None:
            raise MissingParameterError("Resize state is required")

        state = params.resize_state
        if isinstance(state, StateV1) and state.intent != StateIntent.RESIZE:
            raise InvalidParameterError(
                "Resize state must have intent RESIZE", intent=state.intent.name
            )

        resize_state = self._sign_agreed_state(
            params.channel_id,
            state,
            params.server_signatures,
            params.state_data,
            definition=params.definition,
        )
        log.debug("Signed resize state", channel_id=params.channel_id, state=resize_state)
        return FinalStateResult(
            channel_id=params.channel_id, final_state=resize_state, proofs=tuple(params.proofs)
        )

    def _challenge_signer(self, channel_user: Address) -> StateSigner:
        if self.account_address.lower() == channel_user.lower():
            return self.signer
        if self.alternate_signer is None:
            raise MissingParameterError(
                "The account is not the channel user and no alternate signer is configured",
                account=self.account_address,
                channel_user=channel_user,
            )
        return self.alternate_signer

    def prepare_and_sign_challenge_state(
        self, params: ChallengeChannelParams
    ) -> ChallengeStateResult:
        if params.candidate_state is None:
            raise MissingParameterError("Candidate state is required")

        if params.challenger_sig:
            return ChallengeStateResult(
                channel_id=params.channel_id,
                candidate_state=params.candidate_state,
                proofs=tuple(params.proofs),
                challenger_sig=params.challenger_sig,
            )

        challenge_hash = get_challenge_hash(params.channel_id, params.candidate_state)
        if params.candidate_state.protocol_version == ProtocolVersion.V0:
            # legacy challenges are always signed locally
            signer = self.signer
        else:
            channel_data = self.custody.get_channel_data(params.channel_id)
            signer = self._challenge_signer(channel_data.definition.user)
        challenger_sig = signer.sign_raw_message(challenge_hash)

        log.debug(
            "Signed challenge",
            channel_id=params.channel_id,
            challenger=signer.get_address(),
        )
        return ChallengeStateResult(
            channel_id=params.channel_id,
            candidate_state=params.candidate_state,
            proofs=tuple(params.proofs),
            challenger_sig=challenger_sig,
        )
