from typing import Any

import marshmallow
from eth_utils import decode_hex, encode_hex, is_checksum_address, to_checksum_address


class HexedBytes(marshmallow.fields.Field):
    """ Use `bytes` in the dataclass, serialize to hex encoding"""

    def _serialize(self, value: bytes, attr: Any, obj: Any, **kwargs: Any) -> str:
        return encode_hex(value)

    def _deserialize(self, value: str, attr: Any, data: Any, **kwargs: Any) -> bytes:
        try:
            return decode_hex(value)
        except (ValueError, TypeError) as ex:
            raise marshmallow.ValidationError(f"Not a hex encoded value: {value}") from ex


class ChecksumAddress(marshmallow.fields.Field):
    """ Use a checksummed `str` in the dataclass, validate on load"""

    def _serialize(self, value: str, attr: Any, obj: Any, **kwargs: Any) -> str:
        return to_checksum_address(value)

    def _deserialize(self, value: str, attr: Any, data: Any, **kwargs: Any) -> str:
        if not isinstance(value, str) or not is_checksum_address(value):
            raise marshmallow.ValidationError(f"Not a checksummed address: {value}")
        return value


class BigInteger(marshmallow.fields.Field):
    """ Integers beyond the JSON safe range are serialized as decimal strings"""

    def _serialize(self, value: int, attr: Any, obj: Any, **kwargs: Any) -> str:
        return str(value)

    def _deserialize(self, value: Any, attr: Any, data: Any, **kwargs: Any) -> int:
        if isinstance(value, bool):
            raise marshmallow.ValidationError(f"Not an integer: {value}")
        try:
            return int(value)
        except (ValueError, TypeError) as ex:
            raise marshmallow.ValidationError(f"Not an integer: {value}") from ex
