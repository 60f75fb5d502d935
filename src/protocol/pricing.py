"""Fiat currency <-> collateral asset conversion."""

from src.data.constants import RAY, WAD_DECIMALS
from src.data.interfaces import PriceFeed
from src.protocol.errors import PriceUnavailable
from src.protocol.fixed_point import rescale
from src.protocol.registry import Asset, Registry


class PriceConversionService:
    """Converts amounts using a currency's feed price.

    The feed quotes currency smallest units per one whole asset unit. Both
    amounts are lifted to 18 decimals before dividing so that the result
    only loses precision in the final rescale (conversions floor).
    """

    def __init__(self, registry: Registry, feed: PriceFeed) -> None:
        self.registry = registry
        self.feed = feed

    def price(self, currency_code: str) -> int:
        currency = self.registry.currencies.get(currency_code)
        if currency is None:
            raise PriceUnavailable(f"currency {currency_code} is not registered")
        if currency.params.price_feed is None:
            raise PriceUnavailable(f"currency {currency_code} has no price feed")
        price = self.feed.get_price(currency.params.price_feed)
        if price <= 0:
            raise PriceUnavailable(f"price feed for {currency_code} returned {price}")
        return price

    def currency_to_asset(self, currency_code: str, amount: int, asset: Asset) -> int:
        """Collateral-asset units worth ``amount`` currency units."""
        price = self.price(currency_code)
        decimals = self.registry.currencies[currency_code].decimals
        amount_wad = rescale(amount, decimals, WAD_DECIMALS)
        price_wad = rescale(price, decimals, WAD_DECIMALS)
        asset_wad = amount_wad * 10**WAD_DECIMALS // price_wad
        return rescale(asset_wad, WAD_DECIMALS, asset.decimals)

    def asset_to_currency(self, currency_code: str, amount: int, asset: Asset) -> int:
        """Currency units worth ``amount`` collateral-asset units."""
        price = self.price(currency_code)
        decimals = self.registry.currencies[currency_code].decimals
        amount_wad = rescale(amount, asset.decimals, WAD_DECIMALS)
        price_wad = rescale(price, decimals, WAD_DECIMALS)
        currency_wad = amount_wad * price_wad // 10**WAD_DECIMALS
        return rescale(currency_wad, WAD_DECIMALS, decimals)

    def unit_price_in_asset(self, currency_code: str, asset: Asset) -> int:
        """Price of one whole currency unit in whole asset units, as RAY."""
        price = self.price(currency_code)
        decimals = self.registry.currencies[currency_code].decimals
        # one whole currency unit = 10**decimals smallest units; price is per whole asset
        return 10**decimals * RAY // price
