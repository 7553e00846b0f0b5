"""Supported token registry with Pyth price feed identifiers.

Lookups by symbol fail loudly with UnsupportedTokenError: an unknown symbol
is a programming error, not a data condition.
"""

from dataclasses import dataclass

from riskdesk.exceptions import UnsupportedTokenError


@dataclass(frozen=True)
class TokenConfig:
    """Static configuration for one supported token."""

    symbol: str
    pyth_feed_id: str
    decimals: int
    display_name: str

    def to_dict(self) -> dict:
        """Serialize to a JSON-safe dict."""
        return {
            "symbol": self.symbol,
            "pyth_feed_id": self.pyth_feed_id,
            "decimals": self.decimals,
            "display_name": self.display_name,
        }


SUPPORTED_TOKENS: tuple[TokenConfig, ...] = (
    TokenConfig(
        symbol="BTC",
        pyth_feed_id="e62df6c8b4a85fe1a67db44dc12de5db330f7ac66b72dc658afedf0f4a415b43",
        decimals=8,
        display_name="Bitcoin",
    ),
    TokenConfig(
        symbol="ETH",
        pyth_feed_id="ff61491a931112ddf1bd8147cd1b641375f79f5825126d665480874634fd0ace",
        decimals=8,
        display_name="Ethereum",
    ),
    TokenConfig(
        symbol="SOL",
        pyth_feed_id="ef0d8b6fda2ceba41da15d4095d1da392a0d2f8ed0c6c7bc0f4cfac8c280b56d",
        decimals=8,
        display_name="Solana",
    ),
    TokenConfig(
        symbol="USDC",
        pyth_feed_id="eaa020c61cc479712813461ce153894a96a6c00b21ed0cfc2798d1f9a9e9c94a",
        decimals=6,
        display_name="USD Coin",
    ),
    TokenConfig(
        symbol="USDT",
        pyth_feed_id="2b89b9dc8fdf9f34709a5b106b472f0f39bb6ca9ce04b0fd7f2e971688e2e53b",
        decimals=6,
        display_name="Tether",
    ),
)

UNKNOWN_SYMBOL = "UNKNOWN"


def get_token_config(symbol: str) -> TokenConfig:
    """Return the TokenConfig for a symbol.

    Raises:
        UnsupportedTokenError: If the symbol is not supported.
    """
    for token in SUPPORTED_TOKENS:
        if token.symbol == symbol:
            return token
    raise UnsupportedTokenError(f"Unsupported token: {symbol}")


def get_feed_id(symbol: str) -> str:
    """Return the Pyth feed id for a supported symbol."""
    return get_token_config(symbol).pyth_feed_id


def get_symbol_for_feed_id(feed_id: str) -> str:
    """Return the symbol for a feed id, or "UNKNOWN" when not registered.

    Feed ids are compared without a leading "0x" prefix.
    """
    normalized = feed_id.lower().removeprefix("0x")
    for token in SUPPORTED_TOKENS:
        if token.pyth_feed_id == normalized:
            return token.symbol
    return UNKNOWN_SYMBOL


def is_supported(symbol: str) -> bool:
    """Return True if the symbol is in the registry."""
    return any(token.symbol == symbol for token in SUPPORTED_TOKENS)


def supported_symbols() -> list[str]:
    """Return all supported symbols in registry order."""
    return [token.symbol for token in SUPPORTED_TOKENS]
