"""Exception types raised by the simulation core and market-data client."""


class TradeDeckError(Exception):
    """Base class for all TradeDeck errors."""


class InvalidOrderError(TradeDeckError, ValueError):
    """An order request failed validation; the book was not mutated."""


class InvalidQuantityError(InvalidOrderError):
    """Order quantity is missing, non-numeric, or not positive."""


class OrderNotFoundError(TradeDeckError, LookupError):
    """No order with the given id exists in the book."""


class MarketDataError(TradeDeckError):
    """The market-data provider returned an unusable response."""


class PriceUnavailableError(InvalidOrderError):
    """No market price has been observed yet, so orders cannot be priced."""
