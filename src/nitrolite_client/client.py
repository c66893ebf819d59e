from dataclasses import dataclass, field
from datetime import timedelta
from typing import List, Optional, Union

import structlog
from eth_utils import is_checksum_address
from web3 import Web3
from web3.middleware import SignAndSendRawMiddlewareBuilder
from web3.types import TxReceipt

from nitrolite_client.assets import AssetCache
from nitrolite_client.constants import (
    CUSTODY_MIN_CHALLENGE_DURATION,
    DEFAULT_ASSET_CACHE_TTL,
    DEFAULT_CHALLENGE_DURATION,
    DEFAULT_RECEIPT_POLL_INTERVAL,
)
from nitrolite_client.identity import generate_channel_metadata, get_channel_id
from nitrolite_client.nonce import generate_channel_nonce
from nitrolite_client.params import (
    ChallengeChannelParams,
    CheckpointChannelParams,
    CloseChannelParams,
    CreateChannelParams,
    LegacyCreateChannelParams,
    ResizeChannelParams,
)
from nitrolite_client.preparer import StatePreparer
from nitrolite_client.services import CustodyService, Erc20Service
from nitrolite_client.signer import LocalSigner, StateSigner
from nitrolite_client.states import ChannelData, ChannelDefinition
from nitrolite_client.transactions import TransactionPreparer
from nitrolite_libs.constants import UINT32_MAX
from nitrolite_libs.exceptions import InvalidParameterError, MissingParameterError
from nitrolite_libs.types import Address, ChainID, ChannelID, PrivateKey, TokenAmount

log = structlog.get_logger(__name__)


@dataclass
class ClientConfig:
    custody_address: Address
    # read from the connected node when not given
    chain_id: Optional[ChainID] = None
    challenge_duration: int = DEFAULT_CHALLENGE_DURATION
    alternate_signer: Optional[StateSigner] = None
    receipt_poll_interval: float = DEFAULT_RECEIPT_POLL_INTERVAL
    asset_cache_ttl: timedelta = field(default=DEFAULT_ASSET_CACHE_TTL)

    def validate(self) -> None:
        if not self.custody_address:
            raise MissingParameterError("The custody contract address is required")
        if not is_checksum_address(self.custody_address):
            raise InvalidParameterError(
                "Custody address is not checksummed", custody_address=self.custody_address
            )
        if not CUSTODY_MIN_CHALLENGE_DURATION <= self.challenge_duration <= UINT32_MAX:
            raise InvalidParameterError(
                f"Challenge duration must be at least {CUSTODY_MIN_CHALLENGE_DURATION} seconds",
                challenge_duration=self.challenge_duration,
            )
        if self.receipt_poll_interval <= 0:
            raise InvalidParameterError(
                "Receipt poll interval must be positive",
                receipt_poll_interval=self.receipt_poll_interval,
            )


class ChannelClient:
    """Entry point which wires the preparers and contract adapters together

    All dependencies are built once from the validated configuration. The
    `prepare_*` methods of `transaction_preparer` can be used directly to batch
    calls, the methods here execute them right away.
    """

    def __init__(
        self,
        web3: Web3,
        signer: StateSigner,
        config: ClientConfig,
        account_address: Optional[Address] = None,
    ):
        if web3 is None:
            raise MissingParameterError("A web3 instance is required")
        if signer is None:
            raise MissingParameterError("A state signer is required")
        if config is None:
            raise MissingParameterError("A client configuration is required")
        config.validate()

        self.web3 = web3
        self.signer = signer
        self.config = config
        self.account_address = account_address or signer.get_address()
        self.chain_id = ChainID(config.chain_id or web3.eth.chain_id)

        self.custody = CustodyService(web3, config.custody_address, self.account_address)
        self.erc20 = Erc20Service(web3, self.account_address)
        self.assets = AssetCache(self.erc20, ttl=config.asset_cache_ttl)
        self.state_preparer = StatePreparer(
            signer=signer,
            chain_id=self.chain_id,
            custody=self.custody,
            account_address=self.account_address,
            alternate_signer=config.alternate_signer,
        )
        self.transaction_preparer = TransactionPreparer(
            custody=self.custody,
            erc20=self.erc20,
            state_preparer=self.state_preparer,
            custody_address=config.custody_address,
            account_address=self.account_address,
        )
        log.info(
            "Channel client ready",
            account=self.account_address,
            chain_id=self.chain_id,
            custody_address=config.custody_address,
        )

    @classmethod
    def from_private_key(
        cls, web3: Web3, private_key: PrivateKey, config: ClientConfig
    ) -> "ChannelClient":
        """Uses the key for state signatures and for signing transactions"""
        web3.middleware_onion.add(SignAndSendRawMiddlewareBuilder.build(private_key))
        return cls(web3=web3, signer=LocalSigner(private_key), config=config)

    def _execute(self, transactions: list) -> List[TxReceipt]:
        return self.transaction_preparer.execute_transactions(
            transactions, poll_interval=self.config.receipt_poll_interval
        )

    def create_channel_definition(
        self, node: Address, asset: str, nonce: Optional[int] = None
    ) -> ChannelDefinition:
        if nonce is None:
            nonce = generate_channel_nonce(self.account_address)
        return ChannelDefinition(
            challenge_duration=self.config.challenge_duration,
            user=self.account_address,
            node=node,
            nonce=nonce,
            metadata=generate_channel_metadata(asset),
        )

    def get_channel_id(self, definition: ChannelDefinition) -> ChannelID:
        return get_channel_id(definition, self.chain_id)

    def deposit(self, node: Address, token: Address, amount: TokenAmount) -> List[TxReceipt]:
        transactions = self.transaction_preparer.prepare_deposit_transactions(node, token, amount)
        return self._execute(transactions)

    def deposit_and_create_channel(
        self,
        node: Address,
        token: Address,
        amount: TokenAmount,
        params: Union[CreateChannelParams, LegacyCreateChannelParams],
    ) -> List[TxReceipt]:
        transactions = self.transaction_preparer.prepare_deposit_and_create_channel_transactions(
            node, token, amount, params
        )
        return self._execute(transactions)

    def create_channel(
        self, params: Union[CreateChannelParams, LegacyCreateChannelParams]
    ) -> TxReceipt:
        transaction = self.transaction_preparer.prepare_create_channel_transaction(params)
        return self._execute([transaction])[0]

    def checkpoint_channel(self, params: CheckpointChannelParams) -> TxReceipt:
        transaction = self.transaction_preparer.prepare_checkpoint_channel_transaction(params)
        return self._execute([transaction])[0]

    def challenge_channel(self, params: ChallengeChannelParams) -> TxReceipt:
        transaction = self.transaction_preparer.prepare_challenge_channel_transaction(params)
        return self._execute([transaction])[0]

    def close_channel(self, params: CloseChannelParams) -> TxReceipt:
        transaction = self.transaction_preparer.prepare_close_channel_transaction(params)
        return self._execute([transaction])[0]

    def resize_channel(self, params: ResizeChannelParams) -> TxReceipt:
        transaction = self.transaction_preparer.prepare_resize_channel_transaction(params)
        return self._execute([transaction])[0]

    def withdraw(self, token: Address, amount: TokenAmount) -> TxReceipt:
        transaction = self.transaction_preparer.prepare_withdraw_transaction(token, amount)
        return self._execute([transaction])[0]

    def get_account_balance(self, node: Address, token: Address) -> TokenAmount:
        return self.custody.get_account_balance(node, token)

    def get_open_channels(self, user: Optional[Address] = None) -> List[ChannelID]:
        return self.custody.get_open_channels(user or self.account_address)

    def get_channel_data(self, channel_id: ChannelID) -> ChannelData:
        return self.custody.get_channel_data(channel_id)

    def get_token_balance(self, token: Address) -> TokenAmount:
        return self.erc20.get_token_balance(token, self.account_address)
