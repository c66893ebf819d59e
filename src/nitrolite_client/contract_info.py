"""ABI fragments of the contracts the client talks to

Only the functions the client calls are listed. The custody contract exists in
two generations, the ledger based one (v1) and the two party adjudicator one
(legacy). Vault and read functions are shared by both deployments.
"""
from typing import Any, Dict, List

ABI = List[Dict[str, Any]]


def _param(name: str, abi_type: str, components: List[Dict[str, Any]] = None) -> Dict[str, Any]:
    param: Dict[str, Any] = {"name": name, "type": abi_type}
    if components is not None:
        param["components"] = components
    return param


def _function(
    name: str,
    inputs: List[Dict[str, Any]],
    outputs: List[Dict[str, Any]] = None,
    state_mutability: str = "nonpayable",
) -> Dict[str, Any]:
    return {
        "type": "function",
        "name": name,
        "inputs": inputs,
        "outputs": outputs or [],
        "stateMutability": state_mutability,
    }


CHANNEL_DEFINITION_COMPONENTS = [
    _param("challengeDuration", "uint32"),
    _param("user", "address"),
    _param("node", "address"),
    _param("nonce", "uint64"),
    _param("metadata", "bytes32"),
]

LEDGER_COMPONENTS = [
    _param("chainId", "uint64"),
    _param("token", "address"),
    _param("decimals", "uint8"),
    _param("userAllocation", "uint256"),
    _param("userNetFlow", "int256"),
    _param("nodeAllocation", "uint256"),
    _param("nodeNetFlow", "int256"),
]

STATE_COMPONENTS = [
    _param("version", "uint64"),
    _param("intent", "uint8"),
    _param("metadata", "bytes32"),
    _param("homeState", "tuple", LEDGER_COMPONENTS),
    _param("nonHomeState", "tuple", LEDGER_COMPONENTS),
    _param("userSig", "bytes"),
    _param("nodeSig", "bytes"),
]

LEGACY_CHANNEL_COMPONENTS = [
    _param("participants", "address[]"),
    _param("adjudicator", "address"),
    _param("challenge", "uint64"),
    _param("nonce", "uint64"),
]

ALLOCATION_COMPONENTS = [
    _param("destination", "address"),
    _param("token", "address"),
    _param("amount", "uint256"),
]

LEGACY_STATE_COMPONENTS = [
    _param("data", "bytes"),
    _param("allocations", "tuple[]", ALLOCATION_COMPONENTS),
    _param("sigs", "bytes[]"),
]


def _state_transition(name: str, with_proofs: bool = True, payable: bool = False) -> Dict:
    inputs = [_param("channelId", "bytes32"), _param("candidate", "tuple", STATE_COMPONENTS)]
    if with_proofs:
        inputs.append(_param("proofs", "tuple[]", STATE_COMPONENTS))
    return _function(name, inputs, state_mutability="payable" if payable else "nonpayable")


def _legacy_state_transition(name: str) -> Dict:
    return _function(
        name,
        [
            _param("channelId", "bytes32"),
            _param("candidate", "tuple", LEGACY_STATE_COMPONENTS),
            _param("proofs", "tuple[]", LEGACY_STATE_COMPONENTS),
        ],
    )


VAULT_ABI: ABI = [
    _function(
        "depositToVault",
        [_param("node", "address"), _param("token", "address"), _param("amount", "uint256")],
        state_mutability="payable",
    ),
    _function(
        "withdrawFromVault",
        [_param("to", "address"), _param("token", "address"), _param("amount", "uint256")],
    ),
    _function(
        "getOpenChannels",
        [_param("user", "address")],
        [_param("", "bytes32[]")],
        state_mutability="view",
    ),
    _function(
        "getChannelIds",
        [_param("user", "address")],
        [_param("", "bytes32[]")],
        state_mutability="view",
    ),
    _function(
        "getAccountBalance",
        [_param("node", "address"), _param("token", "address")],
        [_param("", "uint256")],
        state_mutability="view",
    ),
    _function(
        "getChannelData",
        [_param("channelId", "bytes32")],
        [
            _param("status", "uint8"),
            _param("definition", "tuple", CHANNEL_DEFINITION_COMPONENTS),
            _param("lastState", "tuple", STATE_COMPONENTS),
            _param("challengeExpiry", "uint256"),
            _param("lockedFunds", "uint256"),
        ],
        state_mutability="view",
    ),
]

CUSTODY_ABI: ABI = VAULT_ABI + [
    _function(
        "createChannel",
        [
            _param("def", "tuple", CHANNEL_DEFINITION_COMPONENTS),
            _param("initState", "tuple", STATE_COMPONENTS),
        ],
        state_mutability="payable",
    ),
    _state_transition("checkpointChannel"),
    _function(
        "challengeChannel",
        [
            _param("channelId", "bytes32"),
            _param("candidate", "tuple", STATE_COMPONENTS),
            _param("proofs", "tuple[]", STATE_COMPONENTS),
            _param("challengerSig", "bytes"),
        ],
        state_mutability="payable",
    ),
    _state_transition("closeChannel"),
    _state_transition("depositToChannel", with_proofs=False, payable=True),
    _state_transition("withdrawFromChannel", with_proofs=False, payable=True),
]

LEGACY_CUSTODY_ABI: ABI = VAULT_ABI + [
    _function(
        "create",
        [
            _param("ch", "tuple", LEGACY_CHANNEL_COMPONENTS),
            _param("initial", "tuple", LEGACY_STATE_COMPONENTS),
        ],
    ),
    _legacy_state_transition("checkpoint"),
    _function(
        "challenge",
        [
            _param("channelId", "bytes32"),
            _param("candidate", "tuple", LEGACY_STATE_COMPONENTS),
            _param("proofs", "tuple[]", LEGACY_STATE_COMPONENTS),
            _param("challengerSig", "bytes"),
        ],
    ),
    _legacy_state_transition("close"),
    _legacy_state_transition("resize"),
]

ERC20_ABI: ABI = [
    _function(
        "allowance",
        [_param("owner", "address"), _param("spender", "address")],
        [_param("", "uint256")],
        state_mutability="view",
    ),
    _function(
        "approve",
        [_param("spender", "address"), _param("amount", "uint256")],
        [_param("", "bool")],
    ),
    _function(
        "balanceOf", [_param("account", "address")], [_param("", "uint256")], "view"
    ),
    _function("decimals", [], [_param("", "uint8")], "view"),
    _function("symbol", [], [_param("", "string")], "view"),
]
