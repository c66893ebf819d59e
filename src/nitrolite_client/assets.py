import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable, Optional

import structlog
from cachetools import TTLCache

from nitrolite_client.constants import DEFAULT_ASSET_CACHE_TTL
from nitrolite_client.services import Erc20Service, is_native_token
from nitrolite_libs.types import Address

log = structlog.get_logger(__name__)

NATIVE_ASSET_DECIMALS = 18
NATIVE_ASSET_SYMBOL = "ETH"


@dataclass(frozen=True)
class AssetInfo:
    token: Address
    decimals: int
    symbol: str


class AssetCache:
    """Token metadata looked up through the ERC-20 adapter

    Entries expire after `ttl`. Concurrent refreshes of the same token are not
    coordinated, the last write wins.
    """

    def __init__(
        self,
        erc20: Erc20Service,
        ttl: timedelta = DEFAULT_ASSET_CACHE_TTL,
        maxsize: int = 1024,
        timer: Callable[[], float] = time.monotonic,
    ):
        self.erc20 = erc20
        self._cache: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl.total_seconds(), timer=timer)

    def get(self, token: Address) -> AssetInfo:
        key = token.lower()
        info = self._cache.get(key)
        if info is not None:
            return info

        if is_native_token(token):
            info = AssetInfo(
                token=token, decimals=NATIVE_ASSET_DECIMALS, symbol=NATIVE_ASSET_SYMBOL
            )
        else:
            info = AssetInfo(
                token=token,
                decimals=self.erc20.get_token_decimals(token),
                symbol=self.erc20.get_token_symbol(token),
            )
        log.debug("Fetched asset info", token=token, decimals=info.decimals, symbol=info.symbol)

        self._cache[key] = info
        return info

    def get_decimals(self, token: Address) -> int:
        return self.get(token).decimals

    def get_symbol(self, token: Address) -> str:
        return self.get(token).symbol

    def invalidate(self, token: Optional[Address] = None) -> None:
        """Drops one token, or everything when no token is given"""
        if token is None:
            self._cache.clear()
        else:
            self._cache.pop(token.lower(), None)
