from typing import Callable, Protocol, Union

from coincurve import PublicKey
from eth_utils import is_address

from nitrolite_client.codec import get_state_hash
from nitrolite_client.states import State
from nitrolite_libs.exceptions import InvalidSignatureError, NitroliteError, SignatureError
from nitrolite_libs.types import Address, ChannelID, PrivateKey, Signature, StateHash
from nitrolite_libs.utils import load_private_key, public_key_to_address

# Offset added to the recovery id, as expected by `ecrecover`
V_OFFSET = 27


class StateSigner(Protocol):
    """Anything able to sign raw 32 byte hashes for one account

    Implementations must not add a message prefix, the custody contract
    recovers signers from the bare state hash.
    """

    @property
    def address(self) -> Address:
        ...

    def get_address(self) -> Address:
        ...

    def sign_state(self, channel_id: ChannelID, state: State) -> Signature:
        ...

    def sign_raw_message(self, message_hash: bytes) -> Signature:
        ...


def _check_hash(message_hash: bytes) -> None:
    if not isinstance(message_hash, bytes) or len(message_hash) != 32:
        raise SignatureError("Only 32 byte hashes can be signed", message_hash=message_hash)


class LocalSigner:
    """Signs with a private key held in memory"""

    def __init__(self, private_key: Union[PrivateKey, str]):
        self.private_key = load_private_key(private_key)
        self._address = public_key_to_address(self.private_key.public_key)

    @property
    def address(self) -> Address:
        return self._address

    def get_address(self) -> Address:
        return self._address

    def sign_state(self, channel_id: ChannelID, state: State) -> Signature:
        return self.sign_raw_message(get_state_hash(channel_id, state))

    def sign_raw_message(self, message_hash: bytes) -> Signature:
        _check_hash(message_hash)
        signature = self.private_key.sign_recoverable(message_hash, hasher=None)
        return Signature(signature[:64] + bytes([signature[64] + V_OFFSET]))


class CallbackSigner:
    """Delegates signing to an external transport

    `sign_fn` receives the raw hash and returns the signature bytes. This
    is how browser wallets and remote signers are plugged in.
    """

    def __init__(self, address: Address, sign_fn: Callable[[bytes], bytes]):
        if not is_address(address):
            raise SignatureError("Signer address is invalid", address=address)
        self._address = address
        self.sign_fn = sign_fn

    @property
    def address(self) -> Address:
        return self._address

    def get_address(self) -> Address:
        return self._address

    def sign_state(self, channel_id: ChannelID, state: State) -> Signature:
        return self.sign_raw_message(get_state_hash(channel_id, state))

    def sign_raw_message(self, message_hash: bytes) -> Signature:
        _check_hash(message_hash)
        try:
            signature = self.sign_fn(message_hash)
        except NitroliteError:
            raise
        except Exception as ex:  # pylint: disable=broad-except
            raise SignatureError("External signer failed", address=self._address) from ex

        if not isinstance(signature, bytes) or not signature:
            raise SignatureError("External signer returned no signature", address=self._address)
        return Signature(signature)


def recover_signer(message_hash: StateHash, signature: Signature) -> Address:
    """Returns the address which produced `signature` over the raw hash

    Raises `InvalidSignatureError` if no signer can be recovered.
    """
    if not isinstance(message_hash, bytes) or len(message_hash) != 32:
        raise InvalidSignatureError("Hash must be 32 bytes", message_hash=message_hash)
    if not isinstance(signature, bytes) or len(signature) != 65:
        raise InvalidSignatureError("Signature must be 65 bytes", signature=signature)

    v = signature[64]
    if v >= V_OFFSET:
        v -= V_OFFSET
    if v not in (0, 1):
        raise InvalidSignatureError("Invalid recovery id", signature=signature)

    try:
        public_key = PublicKey.from_signature_and_message(
            signature[:64] + bytes([v]), message_hash, hasher=None
        )
    except Exception as ex:  # pylint: disable=broad-except
        raise InvalidSignatureError("Could not recover signer", signature=signature) from ex

    return public_key_to_address(public_key)


def verify_signature(
    message_hash: StateHash, signature: Signature, expected_signer: Address
) -> bool:
    """True iff `expected_signer` signed exactly `message_hash`, never raises"""
    try:
        signer = recover_signer(message_hash, signature)
    except InvalidSignatureError:
        return False

    if not isinstance(expected_signer, str):
        return False
    return signer.lower() == expected_signer.lower()
