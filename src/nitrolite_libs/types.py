# pylint: disable=invalid-name
from typing import Any, Dict, NewType

from eth_typing import ChecksumAddress

Address = ChecksumAddress

T_ChainID = int
ChainID = NewType("ChainID", T_ChainID)

T_ChannelID = bytes
ChannelID = NewType("ChannelID", T_ChannelID)

T_StateHash = bytes
StateHash = NewType("StateHash", T_StateHash)

T_Signature = bytes
Signature = NewType("Signature", T_Signature)

T_Nonce = int
Nonce = NewType("Nonce", T_Nonce)

T_TokenAmount = int
TokenAmount = NewType("TokenAmount", T_TokenAmount)

T_TransactionHash = bytes
TransactionHash = NewType("TransactionHash", T_TransactionHash)

T_PrivateKey = bytes
PrivateKey = NewType("PrivateKey", T_PrivateKey)

# The transaction dict returned by web3's `build_transaction`
PreparedTransaction = Dict[str, Any]
