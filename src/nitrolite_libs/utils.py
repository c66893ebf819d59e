import time
from typing import Union

from coincurve import PrivateKey, PublicKey
from eth_utils import keccak, remove_0x_prefix, to_checksum_address

from nitrolite_libs.types import Address, PrivateKey as PrivateKeyType


def public_key_to_address(public_key: PublicKey) -> Address:
    """Converts a public key to an Ethereum address."""
    key_bytes = public_key.format(compressed=False)
    return to_checksum_address(keccak(key_bytes[1:])[-20:])


def private_key_to_address(private_key: Union[PrivateKeyType, str]) -> Address:
    """Converts a private key to an Ethereum address."""
    return public_key_to_address(load_private_key(private_key).public_key)


def load_private_key(private_key: Union[PrivateKeyType, str]) -> PrivateKey:
    """Accepts raw 32 bytes as well as hex encoded keys (with or without `0x`)"""
    if isinstance(private_key, str):
        return PrivateKey.from_hex(remove_0x_prefix(private_key))  # type: ignore
    return PrivateKey(bytes(private_key))


def get_posix_utc_time_now() -> int:
    """Seconds since the epoch, truncated to full seconds"""
    return int(time.time())


def camel_to_snake(input_str: str) -> str:
    return "".join(["_" + c.lower() if c.isupper() else c for c in input_str]).lstrip("_")
