from typing import Any, Dict, List, Optional, Sequence, Tuple

import gevent
import structlog
from web3 import Web3
from web3.contract.contract import ContractFunction
from web3.exceptions import TransactionNotFound
from web3.types import TxReceipt

from nitrolite_client.constants import DEFAULT_RECEIPT_POLL_INTERVAL
from nitrolite_client.contract_info import CUSTODY_ABI, ERC20_ABI, LEGACY_CUSTODY_ABI
from nitrolite_client.states import (
    ChannelData,
    ChannelDefinition,
    ChannelStatus,
    LegacyChannel,
    Ledger,
    ProtocolVersion,
    State,
    StateIntent,
    StateV0,
    StateV1,
)
from nitrolite_libs.constants import NATIVE_TOKEN_ADDRESS
from nitrolite_libs.exceptions import (
    ContractCallError,
    ContractReadError,
    InvalidParameterError,
    MissingParameterError,
    NitroliteError,
    TransactionError,
)
from nitrolite_libs.metrics import (
    TRANSACTIONS_PREPARED,
    ErrorCategory,
    collect_operation_metrics,
    report_error,
)
from nitrolite_libs.types import (
    Address,
    ChannelID,
    PreparedTransaction,
    Signature,
    TokenAmount,
    TransactionHash,
)

log = structlog.get_logger(__name__)


def is_native_token(token: Address) -> bool:
    return token.lower() == NATIVE_TOKEN_ADDRESS.lower()


def ledger_to_abi(ledger: Ledger) -> Tuple:
    return (
        ledger.chain_id,
        ledger.token,
        ledger.decimals,
        ledger.user_allocation,
        ledger.user_net_flow,
        ledger.node_allocation,
        ledger.node_net_flow,
    )


def state_to_abi(state: State) -> Tuple:
    """Converts a state into the struct tuple the custody contract expects"""
    if isinstance(state, StateV1):
        return (
            state.version,
            int(state.intent),
            state.metadata,
            ledger_to_abi(state.home_state),
            ledger_to_abi(state.non_home_state),
            state.user_sig,
            state.node_sig,
        )
    return (
        state.data,
        [(alloc.destination, alloc.token, alloc.amount) for alloc in state.allocations],
        list(state.sigs),
    )


def definition_to_abi(definition: ChannelDefinition) -> Tuple:
    return (
        definition.challenge_duration,
        definition.user,
        definition.node,
        definition.nonce,
        definition.metadata,
    )


def legacy_channel_to_abi(channel: LegacyChannel) -> Tuple:
    return (list(channel.participants), channel.adjudicator, channel.challenge, channel.nonce)


def ledger_from_abi(values: Sequence[Any]) -> Ledger:
    return Ledger(
        chain_id=values[0],
        token=values[1],
        decimals=values[2],
        user_allocation=values[3],
        user_net_flow=values[4],
        node_allocation=values[5],
        node_net_flow=values[6],
    )


def state_from_abi(values: Sequence[Any]) -> StateV1:
    return StateV1(
        version=values[0],
        intent=StateIntent(values[1]),
        metadata=bytes(values[2]),
        home_state=ledger_from_abi(values[3]),
        non_home_state=ledger_from_abi(values[4]),
        user_sig=Signature(bytes(values[5])),
        node_sig=Signature(bytes(values[6])),
    )


def channel_data_from_abi(values: Sequence[Any]) -> ChannelData:
    definition = values[1]
    return ChannelData(
        status=ChannelStatus(values[0]),
        definition=ChannelDefinition(
            challenge_duration=definition[0],
            user=definition[1],
            node=definition[2],
            nonce=definition[3],
            metadata=bytes(definition[4]),
        ),
        last_state=state_from_abi(values[2]),
        challenge_expiry=values[3],
        locked_funds=values[4] if len(values) > 4 else 0,
    )


class ContractService:
    """Common simulate / build / send handling for contract wrappers

    Every `prepare_*` method simulates the call with `eth_call` first, so a
    reverting call fails before anything is signed or sent. The result is the
    transaction dict returned by `build_transaction`.
    """

    def __init__(self, web3: Web3, account_address: Optional[Address] = None):
        if web3 is None:
            raise MissingParameterError("A web3 instance is required")
        self.web3 = web3
        self.account_address = account_address

    def ensure_account(self) -> Address:
        if self.account_address is None:
            raise MissingParameterError("An account is required to prepare transactions")
        return self.account_address

    def _prepare(
        self,
        operation: str,
        contract_function: ContractFunction,
        value: int = 0,
        **details: Any,
    ) -> PreparedTransaction:
        tx_params: Dict[str, Any] = {"from": self.ensure_account()}
        if value:
            tx_params["value"] = value

        with collect_operation_metrics(operation):
            try:
                contract_function.call(tx_params)
                transaction = contract_function.build_transaction(tx_params)
            except NitroliteError:
                raise
            except Exception as ex:  # pylint: disable=broad-except
                report_error(ErrorCategory.CONTRACT_CALL)
                raise ContractCallError(operation, ex, **details) from ex

        TRANSACTIONS_PREPARED.labels(operation=operation).inc()
        log.debug("Prepared transaction", operation=operation, **details)
        return transaction

    def _read(self, operation: str, contract_function: ContractFunction, **details: Any) -> Any:
        try:
            return contract_function.call()
        except NitroliteError:
            raise
        except Exception as ex:  # pylint: disable=broad-except
            report_error(ErrorCategory.CONTRACT_READ)
            raise ContractReadError(operation, ex, **details) from ex

    def send_transaction(
        self, operation: str, transaction: PreparedTransaction, **details: Any
    ) -> TransactionHash:
        try:
            tx_hash = self.web3.eth.send_transaction(transaction)  # type: ignore
        except NitroliteError:
            raise
        except Exception as ex:  # pylint: disable=broad-except
            report_error(ErrorCategory.TRANSACTION)
            raise TransactionError(operation, ex, **details) from ex

        log.info("Transaction sent", operation=operation, tx_hash=tx_hash)
        return TransactionHash(bytes(tx_hash))

    def wait_for_transaction(
        self,
        tx_hash: TransactionHash,
        poll_interval: float = DEFAULT_RECEIPT_POLL_INTERVAL,
    ) -> TxReceipt:
        """Polls until the transaction is mined and returns its receipt

        No timeout is applied here, wrap the call in a `gevent.Timeout` to
        bound the wait.
        """
        while True:
            try:
                receipt = self.web3.eth.get_transaction_receipt(tx_hash)  # type: ignore
            except TransactionNotFound:
                gevent.sleep(poll_interval)
                continue

            if receipt is not None:
                return receipt
            gevent.sleep(poll_interval)


class CustodyService(ContractService):
    """Wrapper around the custody contract

    State carrying calls are routed by the candidate's protocol version. Legacy
    states go to the two party functions of the same deployment.
    """

    def __init__(
        self, web3: Web3, custody_address: Address, account_address: Optional[Address] = None
    ):
        super().__init__(web3, account_address)
        if not custody_address:
            raise MissingParameterError("The custody contract address is required")
        self.custody_address = custody_address
        self.contract = web3.eth.contract(address=custody_address, abi=CUSTODY_ABI)
        self.legacy_contract = web3.eth.contract(address=custody_address, abi=LEGACY_CUSTODY_ABI)

    @staticmethod
    def _protocol_version(candidate: State, proofs: Sequence[State]) -> ProtocolVersion:
        version = candidate.protocol_version
        if any(proof.protocol_version != version for proof in proofs):
            raise InvalidParameterError(
                "Proofs must use the same protocol version as the candidate",
                protocol_version=version.value,
            )
        return version

    def _state_transition(
        self,
        operation: str,
        function_name: str,
        legacy_function_name: str,
        channel_id: ChannelID,
        candidate: State,
        proofs: Sequence[State],
    ) -> PreparedTransaction:
        version = self._protocol_version(candidate, proofs)
        contract = self.legacy_contract if version == ProtocolVersion.V0 else self.contract
        name = legacy_function_name if version == ProtocolVersion.V0 else function_name
        function = getattr(contract.functions, name)(
            channel_id, state_to_abi(candidate), [state_to_abi(proof) for proof in proofs]
        )
        return self._prepare(operation, function, channel_id=channel_id, candidate=candidate)

    # Vault

    def prepare_deposit(
        self, node: Address, token: Address, amount: TokenAmount
    ) -> PreparedTransaction:
        return self._prepare(
            "prepareDeposit",
            self.contract.functions.depositToVault(node, token, amount),
            value=amount if is_native_token(token) else 0,
            node=node,
            token=token,
            amount=amount,
        )

    def deposit(self, node: Address, token: Address, amount: TokenAmount) -> TransactionHash:
        transaction = self.prepare_deposit(node, token, amount)
        return self.send_transaction("deposit", transaction, node=node, token=token, amount=amount)

    def prepare_withdraw(
        self, to: Address, token: Address, amount: TokenAmount
    ) -> PreparedTransaction:
        return self._prepare(
            "prepareWithdraw",
            self.contract.functions.withdrawFromVault(to, token, amount),
            to=to,
            token=token,
            amount=amount,
        )

    def withdraw(self, to: Address, token: Address, amount: TokenAmount) -> TransactionHash:
        transaction = self.prepare_withdraw(to, token, amount)
        return self.send_transaction("withdraw", transaction, to=to, token=token, amount=amount)

    # Channel lifecycle

    def prepare_create_channel(
        self, definition: ChannelDefinition, initial_state: StateV1
    ) -> PreparedTransaction:
        return self._prepare(
            "prepareCreateChannel",
            self.contract.functions.createChannel(
                definition_to_abi(definition), state_to_abi(initial_state)
            ),
            definition=definition,
            initial_state=initial_state,
        )

    def create_channel(
        self, definition: ChannelDefinition, initial_state: StateV1
    ) -> TransactionHash:
        transaction = self.prepare_create_channel(definition, initial_state)
        return self.send_transaction("createChannel", transaction, definition=definition)

    def prepare_create_legacy_channel(
        self, channel: LegacyChannel, initial_state: StateV0
    ) -> PreparedTransaction:
        return self._prepare(
            "prepareCreateChannel",
            self.legacy_contract.functions.create(
                legacy_channel_to_abi(channel), state_to_abi(initial_state)
            ),
            channel=channel,
            initial_state=initial_state,
        )

    def prepare_checkpoint(
        self, channel_id: ChannelID, candidate: State, proofs: Sequence[State] = ()
    ) -> PreparedTransaction:
        return self._state_transition(
            "prepareCheckpoint", "checkpointChannel", "checkpoint", channel_id, candidate, proofs
        )

    def checkpoint(
        self, channel_id: ChannelID, candidate: State, proofs: Sequence[State] = ()
    ) -> TransactionHash:
        transaction = self.prepare_checkpoint(channel_id, candidate, proofs)
        return self.send_transaction("checkpoint", transaction, channel_id=channel_id)

    def prepare_challenge(
        self,
        channel_id: ChannelID,
        candidate: State,
        proofs: Sequence[State],
        challenger_sig: Signature,
    ) -> PreparedTransaction:
        version = self._protocol_version(candidate, proofs)
        contract = self.legacy_contract if version == ProtocolVersion.V0 else self.contract
        name = "challenge" if version == ProtocolVersion.V0 else "challengeChannel"
        function = getattr(contract.functions, name)(
            channel_id,
            state_to_abi(candidate),
            [state_to_abi(proof) for proof in proofs],
            challenger_sig,
        )
        return self._prepare(
            "prepareChallenge", function, channel_id=channel_id, candidate=candidate
        )

    def challenge(
        self,
        channel_id: ChannelID,
        candidate: State,
        proofs: Sequence[State],
        challenger_sig: Signature,
    ) -> TransactionHash:
        transaction = self.prepare_challenge(channel_id, candidate, proofs, challenger_sig)
        return self.send_transaction("challenge", transaction, channel_id=channel_id)

    def prepare_close(
        self, channel_id: ChannelID, candidate: State, proofs: Sequence[State] = ()
    ) -> PreparedTransaction:
        return self._state_transition(
            "prepareClose", "closeChannel", "close", channel_id, candidate, proofs
        )

    def close(
        self, channel_id: ChannelID, candidate: State, proofs: Sequence[State] = ()
    ) -> TransactionHash:
        transaction = self.prepare_close(channel_id, candidate, proofs)
        return self.send_transaction("close", transaction, channel_id=channel_id)

    def prepare_resize(
        self, channel_id: ChannelID, candidate: State, proofs: Sequence[State] = ()
    ) -> PreparedTransaction:
        # ledger channels have no dedicated resize entry point, a RESIZE state
        # is submitted like any other checkpoint
        return self._state_transition(
            "prepareResize", "checkpointChannel", "resize", channel_id, candidate, proofs
        )

    def prepare_deposit_to_channel(
        self, channel_id: ChannelID, candidate: StateV1
    ) -> PreparedTransaction:
        return self._prepare(
            "prepareDepositToChannel",
            self.contract.functions.depositToChannel(channel_id, state_to_abi(candidate)),
            channel_id=channel_id,
            candidate=candidate,
        )

    def prepare_withdraw_from_channel(
        self, channel_id: ChannelID, candidate: StateV1
    ) -> PreparedTransaction:
        return self._prepare(
            "prepareWithdrawFromChannel",
            self.contract.functions.withdrawFromChannel(channel_id, state_to_abi(candidate)),
            channel_id=channel_id,
            candidate=candidate,
        )

    # Reads

    def get_open_channels(self, user: Address) -> List[ChannelID]:
        result = self._read(
            "getOpenChannels", self.contract.functions.getOpenChannels(user), user=user
        )
        return [ChannelID(bytes(channel_id)) for channel_id in result]

    def get_channel_ids(self, user: Address) -> List[ChannelID]:
        result = self._read(
            "getChannelIds", self.contract.functions.getChannelIds(user), user=user
        )
        return [ChannelID(bytes(channel_id)) for channel_id in result]

    def get_account_balance(self, node: Address, token: Address) -> TokenAmount:
        result = self._read(
            "getAccountBalance",
            self.contract.functions.getAccountBalance(node, token),
            node=node,
            token=token,
        )
        return TokenAmount(result)

    def get_channel_data(self, channel_id: ChannelID) -> ChannelData:
        result = self._read(
            "getChannelData",
            self.contract.functions.getChannelData(channel_id),
            channel_id=channel_id,
        )
        try:
            return channel_data_from_abi(result)
        except (ValueError, TypeError, IndexError) as ex:
            raise ContractReadError("getChannelData", ex, channel_id=channel_id) from ex


class Erc20Service(ContractService):
    """Wrapper around ERC-20 token contracts, one contract object per token"""

    def _token(self, token: Address) -> Any:
        return self.web3.eth.contract(address=token, abi=ERC20_ABI)

    def get_token_allowance(self, token: Address, owner: Address, spender: Address) -> TokenAmount:
        result = self._read(
            "getTokenAllowance",
            self._token(token).functions.allowance(owner, spender),
            token=token,
            owner=owner,
            spender=spender,
        )
        return TokenAmount(result)

    def get_token_balance(self, token: Address, account: Address) -> TokenAmount:
        result = self._read(
            "getTokenBalance",
            self._token(token).functions.balanceOf(account),
            token=token,
            account=account,
        )
        return TokenAmount(result)

    def get_token_decimals(self, token: Address) -> int:
        return self._read("getTokenDecimals", self._token(token).functions.decimals(), token=token)

    def get_token_symbol(self, token: Address) -> str:
        return self._read("getTokenSymbol", self._token(token).functions.symbol(), token=token)

    def prepare_approve(
        self, token: Address, spender: Address, amount: TokenAmount
    ) -> PreparedTransaction:
        return self._prepare(
            "prepareApprove",
            self._token(token).functions.approve(spender, amount),
            token=token,
            spender=spender,
            amount=amount,
        )

    def approve(self, token: Address, spender: Address, amount: TokenAmount) -> TransactionHash:
        transaction = self.prepare_approve(token, spender, amount)
        return self.send_transaction(
            "approve", transaction, token=token, spender=spender, amount=amount
        )
