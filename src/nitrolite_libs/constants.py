from nitrolite_libs.types import Address

UINT8_MAX = 2 ** 8 - 1
UINT32_MAX = 2 ** 32 - 1
UINT64_MAX = 2 ** 64 - 1
INT64_MAX = 2 ** 63 - 1
UINT256_MAX = 2 ** 256 - 1
INT256_MIN = -(2 ** 255)
INT256_MAX = 2 ** 255 - 1

# The zero address stands for the chain's native asset in deposits and ledgers
NATIVE_TOKEN_ADDRESS = Address("0x0000000000000000000000000000000000000000")

EMPTY_BYTES32: bytes = bytes(32)
EMPTY_SIGNATURE: bytes = b""

DEFAULT_ETH_RPC: str = "http://127.0.0.1:8545"
DEFAULT_POLL_INTERVAL: float = 2
