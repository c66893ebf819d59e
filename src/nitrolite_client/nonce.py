import secrets
from typing import Callable, Optional

from eth_utils import is_address

from nitrolite_client.constants import CHANNEL_NONCE_MASK
from nitrolite_libs.exceptions import InvalidParameterError
from nitrolite_libs.types import Address, Nonce
from nitrolite_libs.utils import get_posix_utc_time_now


def generate_channel_nonce(
    address: Optional[Address] = None,
    clock: Callable[[], int] = get_posix_utc_time_now,
    randbits: Callable[[int], int] = secrets.randbits,
) -> Nonce:
    """Returns a fresh channel nonce

    The upper half holds the current time in seconds, the lower half 32 random
    bits. When an address is given, its last 8 bytes are mixed in so two
    accounts creating channels in the same second rarely collide. The result
    is not globally unique, retry with a new nonce when the chain rejects it.
    """
    nonce = (int(clock()) << 32) | (randbits(32) & 0xFFFFFFFF)

    if address is not None:
        if not is_address(address):
            raise InvalidParameterError("Not a valid address", address=address)
        nonce ^= int(address[-16:], 16)

    return Nonce(nonce & CHANNEL_NONCE_MASK)
