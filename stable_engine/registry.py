"""
registry.py - The fixed set of collateral assets an engine accepts

An AssetRegistry is built once and never changes. Each entry ties an asset id
to the price feed it is valued with and to the token ledger that moves it.
A single ordered mapping replaces parallel token/feed lists, so an asset can
never be paired with the wrong feed.
"""

from __future__ import annotations
from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterable, Iterator, Mapping, Tuple, TYPE_CHECKING

from .core import COLLATERAL_DECIMALS, TokenNotAllowed

if TYPE_CHECKING:
    from .config import CollateralConfig
    from .token import CollateralAsset


@dataclass(frozen=True, slots=True)
class RegisteredAsset:
    """
    One accepted collateral asset.

    Attributes:
        asset_id: Identifier used in every engine call (e.g. "WETH")
        feed_id: Identifier of the price feed valuing the asset (e.g. "ETH/USD")
        token: Ledger that moves the asset in and out of custody

    Tokens that report `decimals` must use COLLATERAL_DECIMALS; valuation
    treats every amount as an 18-decimal base unit.
    """
    asset_id: str
    feed_id: str
    token: 'CollateralAsset'

    def __post_init__(self):
        if not self.asset_id or not self.asset_id.strip():
            raise ValueError("asset_id cannot be empty")
        if not self.feed_id or not self.feed_id.strip():
            raise ValueError(f"feed_id for {self.asset_id} cannot be empty")
        decimals = getattr(self.token, "decimals", COLLATERAL_DECIMALS)
        if decimals != COLLATERAL_DECIMALS:
            raise ValueError(
                f"{self.asset_id} has {decimals} decimals; collateral must use {COLLATERAL_DECIMALS}"
            )


class AssetRegistry:
    """
    Immutable, ordered mapping from asset id to RegisteredAsset.

    Iteration order is registration order; valuation sums over assets in this
    order.
    """

    __slots__ = ('_entries',)

    def __init__(self, assets: Iterable[RegisteredAsset]):
        """
        Args:
            assets: Entries in registration order

        Raises:
            ValueError: If there are no entries or an asset id repeats
        """
        entries = {}
        for asset in assets:
            if asset.asset_id in entries:
                raise ValueError(f"Asset {asset.asset_id} already registered")
            entries[asset.asset_id] = asset
        if not entries:
            raise ValueError("At least one collateral asset must be registered")
        self._entries: Mapping[str, RegisteredAsset] = MappingProxyType(entries)

    @classmethod
    def from_config(
        cls,
        collateral: Iterable['CollateralConfig'],
        tokens: Mapping[str, 'CollateralAsset'],
    ) -> AssetRegistry:
        """
        Build a registry from configured (asset, feed) pairs.

        Args:
            collateral: Configured collateral entries
            tokens: Mapping from asset id to the token ledger for that asset

        Raises:
            ValueError: If a configured asset has no token
        """
        assets = []
        for entry in collateral:
            token = tokens.get(entry.asset)
            if token is None:
                raise ValueError(f"No token ledger supplied for collateral asset {entry.asset}")
            assets.append(RegisteredAsset(entry.asset, entry.feed_id, token))
        return cls(assets)

    def require(self, asset_id: str) -> RegisteredAsset:
        """
        Return the entry for an asset.

        Raises:
            TokenNotAllowed: If the asset is not registered
        """
        entry = self._entries.get(asset_id)
        if entry is None:
            raise TokenNotAllowed(asset_id)
        return entry

    def feed_id(self, asset_id: str) -> str:
        return self.require(asset_id).feed_id

    def token(self, asset_id: str) -> 'CollateralAsset':
        return self.require(asset_id).token

    def asset_ids(self) -> Tuple[str, ...]:
        """Registered asset ids in registration order."""
        return tuple(self._entries)

    def tokens(self) -> Tuple['CollateralAsset', ...]:
        return tuple(entry.token for entry in self._entries.values())

    def __contains__(self, asset_id: object) -> bool:
        return asset_id in self._entries

    def __iter__(self) -> Iterator[RegisteredAsset]:
        return iter(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self):
        pairs = ", ".join(f"{a.asset_id}:{a.feed_id}" for a in self._entries.values())
        return f"AssetRegistry({pairs})"
