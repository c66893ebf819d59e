from contextlib import contextmanager
from typing import Any, Generator, List, Optional, Sequence, Union

import structlog
from web3.types import TxReceipt

from nitrolite_client.constants import DEFAULT_RECEIPT_POLL_INTERVAL, REQUIRED_SIGNATURES
from nitrolite_client.params import (
    ChallengeChannelParams,
    CheckpointChannelParams,
    CloseChannelParams,
    CreateChannelParams,
    DepositToChannelParams,
    LegacyCreateChannelParams,
    ResizeChannelParams,
    WithdrawFromChannelParams,
)
from nitrolite_client.preparer import StatePreparer
from nitrolite_client.services import CustodyService, Erc20Service, is_native_token
from nitrolite_client.states import State
from nitrolite_libs.exceptions import (
    ContractCallError,
    InvalidParameterError,
    MissingParameterError,
    NitroliteError,
    TransactionError,
)
from nitrolite_libs.metrics import TRANSACTIONS_MINED, TransactionStatus, get_metrics_for_label
from nitrolite_libs.types import Address, PreparedTransaction, TokenAmount

log = structlog.get_logger(__name__)


@contextmanager
def wrap_contract_errors(operation: str, **details: Any) -> Generator[None, None, None]:
    """Re-raises untyped errors as `ContractCallError`, typed ones unchanged"""
    try:
        yield
    except NitroliteError:
        raise
    except Exception as ex:  # pylint: disable=broad-except
        raise ContractCallError(operation, ex, **details) from ex


def check_signature_count(state: State, operation: str) -> None:
    count = len(state.signatures)
    if count < REQUIRED_SIGNATURES:
        raise InvalidParameterError(
            f"{operation} requires a state signed by both parties",
            signatures=count,
            required=REQUIRED_SIGNATURES,
        )


class TransactionPreparer:
    """Sequences dependent contract calls into ordered lists of prepared transactions

    Nothing is sent while preparing. The returned lists can be batched by the
    caller or handed to `execute_transactions`.
    """

    def __init__(
        self,
        custody: CustodyService,
        erc20: Erc20Service,
        state_preparer: StatePreparer,
        custody_address: Optional[Address] = None,
        account_address: Optional[Address] = None,
    ):
        if custody is None:
            raise MissingParameterError("The custody service is required")
        if erc20 is None:
            raise MissingParameterError("The ERC-20 service is required")
        if state_preparer is None:
            raise MissingParameterError("The state preparer is required")

        self.custody = custody
        self.erc20 = erc20
        self.state_preparer = state_preparer
        self.custody_address = custody_address or custody.custody_address
        self.account_address = account_address or state_preparer.account_address

    def prepare_deposit_transactions(
        self, node: Address, token: Address, amount: TokenAmount
    ) -> List[PreparedTransaction]:
        """Returns `[approve?, deposit]`

        The allowance is read on every call, so preparing again after a partial
        execution does not approve twice. Native deposits never need an approval.
        """
        transactions: List[PreparedTransaction] = []
        with wrap_contract_errors(
            "prepareDepositTransactions", node=node, token=token, amount=amount
        ):
            if not is_native_token(token):
                allowance = self.erc20.get_token_allowance(
                    token, self.account_address, self.custody_address
                )
                if allowance < amount:
                    log.debug("Allowance too low", token=token, allowance=allowance, amount=amount)
                    transactions.append(
                        self.erc20.prepare_approve(token, self.custody_address, amount)
                    )

            transactions.append(self.custody.prepare_deposit(node, token, amount))

        return transactions

    def prepare_deposit_and_create_channel_transactions(
        self,
        node: Address,
        token: Address,
        amount: TokenAmount,
        params: Union[CreateChannelParams, LegacyCreateChannelParams],
    ) -> List[PreparedTransaction]:
        """Returns `[approve?, deposit, create]`, to be executed in this order"""
        with wrap_contract_errors(
            "prepareDepositAndCreateChannelTransactions", node=node, token=token, amount=amount
        ):
            transactions = self.prepare_deposit_transactions(node, token, amount)
            transactions.append(self.prepare_create_channel_transaction(params))
        return transactions

    def prepare_create_channel_transaction(
        self, params: Union[CreateChannelParams, LegacyCreateChannelParams]
    ) -> PreparedTransaction:
        with wrap_contract_errors("prepareCreateChannelTransaction"):
            result = self.state_preparer.prepare_and_sign_initial_state(params)
            if result.channel is not None:
                return self.custody.prepare_create_legacy_channel(
                    result.channel, result.initial_state  # type: ignore
                )
            return self.custody.prepare_create_channel(
                params.definition, result.initial_state  # type: ignore
            )

    def prepare_checkpoint_channel_transaction(
        self, params: CheckpointChannelParams
    ) -> PreparedTransaction:
        check_signature_count(params.candidate_state, "Checkpoint")
        with wrap_contract_errors(
            "prepareCheckpointChannelTransaction", channel_id=params.channel_id
        ):
            return self.custody.prepare_checkpoint(
                params.channel_id, params.candidate_state, params.proofs
            )

    def prepare_challenge_channel_transaction(
        self, params: ChallengeChannelParams
    ) -> PreparedTransaction:
        with wrap_contract_errors(
            "prepareChallengeChannelTransaction", channel_id=params.channel_id
        ):
            result = self.state_preparer.prepare_and_sign_challenge_state(params)
            return self.custody.prepare_challenge(
                result.channel_id, result.candidate_state, result.proofs, result.challenger_sig
            )

    def prepare_close_channel_transaction(self, params: CloseChannelParams) -> PreparedTransaction:
        with wrap_contract_errors("prepareCloseChannelTransaction", channel_id=params.channel_id):
            result = self.state_preparer.prepare_and_sign_final_state(params)
            check_signature_count(result.final_state, "Close")
            return self.custody.prepare_close(result.channel_id, result.final_state, result.proofs)

    def prepare_resize_channel_transaction(
        self, params: ResizeChannelParams
    ) -> PreparedTransaction:
        with wrap_contract_errors("prepareResizeChannelTransaction", channel_id=params.channel_id):
            result = self.state_preparer.prepare_and_sign_resize_state(params)
            check_signature_count(result.final_state, "Resize")
            return self.custody.prepare_resize(
                result.channel_id, result.final_state, result.proofs
            )

    def prepare_withdraw_transaction(
        self, token: Address, amount: TokenAmount, to: Optional[Address] = None
    ) -> PreparedTransaction:
        recipient = to or self.account_address
        with wrap_contract_errors("prepareWithdrawTransaction", token=token, amount=amount):
            return self.custody.prepare_withdraw(recipient, token, amount)

    def prepare_deposit_to_channel_transaction(
        self, params: DepositToChannelParams
    ) -> PreparedTransaction:
        check_signature_count(params.candidate, "Channel deposit")
        with wrap_contract_errors(
            "prepareDepositToChannelTransaction", channel_id=params.channel_id
        ):
            return self.custody.prepare_deposit_to_channel(params.channel_id, params.candidate)

    def prepare_withdraw_from_channel_transaction(
        self, params: WithdrawFromChannelParams
    ) -> PreparedTransaction:
        check_signature_count(params.candidate, "Channel withdrawal")
        with wrap_contract_errors(
            "prepareWithdrawFromChannelTransaction", channel_id=params.channel_id
        ):
            return self.custody.prepare_withdraw_from_channel(
                params.channel_id, params.candidate
            )

    def execute_transactions(
        self,
        transactions: Sequence[PreparedTransaction],
        poll_interval: float = DEFAULT_RECEIPT_POLL_INTERVAL,
    ) -> List[TxReceipt]:
        """Sends the transactions one by one, waiting for each to be mined

        This is not atomic. When a step fails, the earlier steps stay mined and
        the raised `TransactionError` names the failing step.
        """
        receipts = []
        for step, transaction in enumerate(transactions):
            tx_hash = self.custody.send_transaction(
                "executeTransactions", transaction, step=step
            )
            receipt = self.custody.wait_for_transaction(tx_hash, poll_interval=poll_interval)

            if receipt["status"] != 1:
                get_metrics_for_label(TRANSACTIONS_MINED, TransactionStatus.FAILED).inc()
                log.error("Transaction failed", step=step, tx_hash=tx_hash)
                raise TransactionError(
                    f"executeTransactions step {step}", step=step, tx_hash=tx_hash
                )

            get_metrics_for_label(TRANSACTIONS_MINED, TransactionStatus.SUCCESSFUL).inc()
            log.info(
                "Transaction mined",
                step=step,
                tx_hash=tx_hash,
                block_number=receipt.get("blockNumber"),
            )
            receipts.append(receipt)

        return receipts
