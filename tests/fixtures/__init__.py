from .cli import default_cli_args, keystore_file
from .client import custody_address, custody_service, erc20_service, web3_mock
from .metrics import prometheus_client_collectors, prometheus_client_teardown
from .states import (
    channel_definition,
    channel_id,
    home_ledger,
    initial_state,
    legacy_params,
    legacy_state,
    node_signer,
    non_home_ledger,
    operate_state,
    token,
    user_signer,
)

# Without declaring `__all__`, the submodule names would get imported
# when doing `from tests.fixtures import *`, which is not intended.
__all__ = [
    "channel_definition",
    "channel_id",
    "custody_address",
    "custody_service",
    "default_cli_args",
    "erc20_service",
    "home_ledger",
    "initial_state",
    "keystore_file",
    "legacy_params",
    "legacy_state",
    "node_signer",
    "non_home_ledger",
    "operate_state",
    "prometheus_client_collectors",
    "prometheus_client_teardown",
    "token",
    "user_signer",
    "web3_mock",
]
