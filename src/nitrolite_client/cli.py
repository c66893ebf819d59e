from gevent import monkey  # isort:skip # noqa

monkey.patch_all(subprocess=False, thread=False)  # isort:skip # noqa

import json
import sys
from typing import Any, Optional

import click
import structlog
from eth_utils import decode_hex, encode_hex
from web3 import Web3

from nitrolite_client.client import ChannelClient, ClientConfig
from nitrolite_client.constants import APP_NAME, DEFAULT_CHALLENGE_DURATION
from nitrolite_client.nonce import generate_channel_nonce
from nitrolite_client.states import ChannelData
from nitrolite_libs.cli import blockchain_options, common_options, validate_address
from nitrolite_libs.constants import NATIVE_TOKEN_ADDRESS
from nitrolite_libs.exceptions import NitroliteError
from nitrolite_libs.types import Address, ChainID, ChannelID, PrivateKey, TokenAmount

log = structlog.get_logger(__name__)


def _echo_json(value: Any) -> None:
    click.echo(json.dumps(value, indent=2))


def _create_client(
    web3: Web3, chain_id: ChainID, private_key: PrivateKey, custody_address: Address
) -> ChannelClient:
    config = ClientConfig(
        custody_address=custody_address,
        chain_id=chain_id,
        challenge_duration=DEFAULT_CHALLENGE_DURATION,
    )
    try:
        return ChannelClient.from_private_key(web3, private_key, config)
    except NitroliteError as ex:
        log.error("Invalid client configuration", error=str(ex))
        sys.exit(1)


def _validate_channel_id(
    _ctx: click.Context, _param: click.Parameter, value: Optional[str]
) -> Optional[ChannelID]:
    if value is None:
        return None
    try:
        channel_id = decode_hex(value)
    except ValueError as ex:
        raise click.BadParameter("not a hex encoded channel id") from ex
    if len(channel_id) != 32:
        raise click.BadParameter("a channel id has 32 bytes")
    return ChannelID(channel_id)


token_option = click.option(
    "--token",
    default=NATIVE_TOKEN_ADDRESS,
    callback=validate_address,
    help="Token address, the zero address stands for the native asset",
)


@click.group(context_settings={"auto_envvar_prefix": "NITROLITE"})
def main() -> None:
    """Client for state channels held by a custody contract"""


@blockchain_options()
@main.command()
@click.option("--node", required=True, callback=validate_address, help="Channel node address")
@token_option
@click.option("--amount", required=True, type=click.IntRange(min=1), help="Amount in base units")
@common_options(APP_NAME)
def deposit(
    private_key: PrivateKey,
    web3: Web3,
    chain_id: ChainID,
    custody_address: Address,
    node: Address,
    token: Address,
    amount: TokenAmount,
) -> None:
    """Approve if needed and deposit into the custody vault"""
    client = _create_client(web3, chain_id, private_key, custody_address)
    try:
        receipts = client.deposit(node, token, amount)
    except NitroliteError as ex:
        log.error("Deposit failed", error=str(ex))
        sys.exit(1)
    _echo_json([encode_hex(receipt["transactionHash"]) for receipt in receipts])


@blockchain_options()
@main.command()
@token_option
@click.option("--amount", required=True, type=click.IntRange(min=1), help="Amount in base units")
@common_options(APP_NAME)
def withdraw(
    private_key: PrivateKey,
    web3: Web3,
    chain_id: ChainID,
    custody_address: Address,
    token: Address,
    amount: TokenAmount,
) -> None:
    """Withdraw from the custody vault to the own account"""
    client = _create_client(web3, chain_id, private_key, custody_address)
    try:
        receipt = client.withdraw(token, amount)
    except NitroliteError as ex:
        log.error("Withdrawal failed", error=str(ex))
        sys.exit(1)
    _echo_json(encode_hex(receipt["transactionHash"]))


@blockchain_options()
@main.command()
@click.option("--node", required=True, callback=validate_address, help="Channel node address")
@token_option
@common_options(APP_NAME)
def balance(
    private_key: PrivateKey,
    web3: Web3,
    chain_id: ChainID,
    custody_address: Address,
    node: Address,
    token: Address,
) -> None:
    """Show the vault balance held for a node"""
    client = _create_client(web3, chain_id, private_key, custody_address)
    try:
        amount = client.get_account_balance(node, token)
        asset = client.assets.get(token)
    except NitroliteError as ex:
        log.error("Could not read balance", error=str(ex))
        sys.exit(1)
    _echo_json(
        {
            "node": node,
            "token": token,
            "symbol": asset.symbol,
            "decimals": asset.decimals,
            "balance": str(amount),
        }
    )


@blockchain_options()
@main.command("open-channels")
@click.option("--user", default=None, callback=validate_address, help="Defaults to own account")
@common_options(APP_NAME)
def open_channels(
    private_key: PrivateKey,
    web3: Web3,
    chain_id: ChainID,
    custody_address: Address,
    user: Optional[Address],
) -> None:
    """List the ids of the user's open channels"""
    client = _create_client(web3, chain_id, private_key, custody_address)
    try:
        channel_ids = client.get_open_channels(user)
    except NitroliteError as ex:
        log.error("Could not read open channels", error=str(ex))
        sys.exit(1)
    _echo_json([encode_hex(channel_id) for channel_id in channel_ids])


@blockchain_options()
@main.command("channel-info")
@click.option("--channel-id", required=True, callback=_validate_channel_id, help="Channel id")
@common_options(APP_NAME)
def channel_info(
    private_key: PrivateKey,
    web3: Web3,
    chain_id: ChainID,
    custody_address: Address,
    channel_id: ChannelID,
) -> None:
    """Show the custody contract's view of a channel"""
    client = _create_client(web3, chain_id, private_key, custody_address)
    try:
        channel_data = client.get_channel_data(channel_id)
    except NitroliteError as ex:
        log.error("Could not read channel data", error=str(ex))
        sys.exit(1)
    _echo_json(ChannelData.Schema().dump(channel_data))


@main.command()
@click.option("--address", default=None, callback=validate_address, help="Address to mix in")
def nonce(address: Optional[Address]) -> None:
    """Generate a fresh channel nonce"""
    click.echo(generate_channel_nonce(address))


if __name__ == "__main__":
    main()  # pragma: no cover
