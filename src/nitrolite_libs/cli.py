import json
import logging
import os
import sys
from functools import wraps
from typing import Any, Callable, List, Optional, Tuple

import click
import gevent
import requests.exceptions
import sentry_sdk
import structlog
from eth_account import Account
from eth_utils import is_checksum_address
from sentry_sdk.integrations.logging import LoggingIntegration
from web3 import HTTPProvider, Web3
from web3.middleware import ExtraDataToPOAMiddleware

from nitrolite_libs.constants import DEFAULT_ETH_RPC
from nitrolite_libs.logging import setup_logging
from nitrolite_libs.types import Address, ChainID, PrivateKey

log = structlog.get_logger(__name__)


def _open_keystore(keystore_file: str, password: str) -> PrivateKey:
    with open(keystore_file, "r") as keystore:
        try:
            private_key = bytes(
                Account.decrypt(keyfile_json=json.load(keystore), password=password)
            )
            return PrivateKey(private_key)
        except ValueError as error:
            log.critical(
                "Could not decode keyfile with given password. Please try again.",
                reason=str(error),
            )
            sys.exit(1)


def validate_address(
    _ctx: click.Context, _param: click.Parameter, value: Optional[str]
) -> Optional[Address]:
    if value is None:
        # None as default value allowed
        return None
    if not is_checksum_address(value):
        raise click.BadParameter("not an EIP-55 checksummed address")
    return Address(value)


def common_options(app_name: str) -> Callable:
    """A decorator to be used with all client commands

    It will pass new args to the given func:
    * private_key (as a result of `--keystore-file` and `--password`)
    * log_level
    * log_json

    The `app_name` is attached to the sentry setup.
    """

    def decorator(func: Callable) -> Callable:
        for option in reversed(
            [
                click.option(
                    "--keystore-file",
                    required=True,
                    type=click.Path(exists=True, dir_okay=False, readable=True),
                    help="Path to a keystore file.",
                ),
                click.password_option(
                    "--password",
                    confirmation_prompt=False,
                    help="Password to unlock the keystore file.",
                ),
                click.option(
                    "--log-level",
                    default="INFO",
                    type=click.Choice(["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"]),
                    help="Print log messages of this level and more important ones",
                ),
                click.option(
                    "--log-json/--no-log-json",
                    default=False,
                    help="Enable or disable logging in JSON format",
                ),
            ]
        ):
            func = option(func)

        @wraps(func)
        def call_with_common_options_initialized(**params: Any) -> Callable:
            params["private_key"] = _open_keystore(
                params.pop("keystore_file"), params.pop("password")
            )

            # Don't print traceback on KeyboardInterrupt
            gevent.get_hub().NOT_ERROR += (KeyboardInterrupt,)

            try:
                setup_logging(log_level=params.pop("log_level"), log_json=params.pop("log_json"))
                setup_sentry(app_name)
                return func(**params)
            finally:
                structlog.reset_defaults()

        return call_with_common_options_initialized

    return decorator


def blockchain_options() -> Callable:
    """A decorator providing blockchain related params to a command

    Replaces `--eth-rpc` and `--chain-id` by a connected `web3` object and the
    verified `chain_id`. `--custody-address` is passed through unchanged.
    """
    options = [
        click.Option(
            ["--eth-rpc"], default=DEFAULT_ETH_RPC, type=str, help="Ethereum node RPC URI"
        ),
        click.Option(
            ["--chain-id"],
            type=int,
            default=None,
            help="Expected chain id. The command aborts if the node reports a different one.",
        ),
        click.Option(
            ["--custody-address"],
            type=str,
            required=True,
            callback=validate_address,
            help="Address of the custody contract",
        ),
    ]

    def decorator(command: click.Command) -> click.Command:
        assert command.callback
        callback = command.callback

        command.params += options

        def call_with_blockchain_info(**params: Any) -> Callable:
            params["web3"], params["chain_id"] = connect_to_blockchain(
                eth_rpc=params.pop("eth_rpc"), expected_chain_id=params.pop("chain_id")
            )
            return callback(**params)

        command.callback = call_with_blockchain_info
        return command

    return decorator


def connect_to_blockchain(
    eth_rpc: str, expected_chain_id: Optional[int] = None
) -> Tuple[Web3, ChainID]:
    try:
        provider = HTTPProvider(eth_rpc)
        web3 = Web3(provider)
        # Will throw ConnectionError on bad Ethereum client
        chain_id = ChainID(web3.eth.chain_id)
    except requests.exceptions.ConnectionError:
        log.error(
            "Can not connect to the Ethereum client. Please check that it is running and that "
            "your settings are correct.",
            eth_rpc=eth_rpc,
        )
        sys.exit(1)

    if expected_chain_id is not None and expected_chain_id != chain_id:
        log.error(
            "The Ethereum client is connected to a different chain",
            expected_chain_id=expected_chain_id,
            chain_id=chain_id,
        )
        sys.exit(1)

    # Add POA middleware for geth POA chains, no/op for other chains
    web3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)

    return web3, chain_id


def setup_sentry(app_name: str) -> None:
    sentry_dsn = os.environ.get("SENTRY_DSN")
    environment = os.environ.get("DEPLOY_ENV")
    if sentry_dsn is not None:
        log.info("Initializing sentry", dsn=sentry_dsn, app_name=app_name)
        integrations: List[Any] = [LoggingIntegration(level=logging.INFO, event_level=None)]
        sentry_sdk.init(
            dsn=sentry_dsn,
            integrations=integrations,
            server_name=app_name,
            environment=environment,
        )
