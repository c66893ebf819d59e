from datetime import timedelta

from nitrolite_libs.constants import INT64_MAX

APP_NAME: str = "nitrolite-client"

# The custody contract rejects channels with a shorter challenge period
CUSTODY_MIN_CHALLENGE_DURATION: int = 3600
DEFAULT_CHALLENGE_DURATION: int = 86400

# App data placed into legacy states when the caller provides none
MAGIC_NUMBER_OPEN: int = 7877
MAGIC_NUMBER_CLOSE: int = 7879

# Appended to the packed state before hashing a challenge signature
CHALLENGE_DISCRIMINATOR: bytes = b"challenge"

# Channel nonces are kept within the positive range of a signed 64 bit integer
CHANNEL_NONCE_MASK: int = INT64_MAX

# Number of signatures the custody contract requires on a mutually agreed state
REQUIRED_SIGNATURES: int = 2

DEFAULT_ASSET_CACHE_TTL: timedelta = timedelta(minutes=10)
DEFAULT_RECEIPT_POLL_INTERVAL: float = 1.0
