"""
Amount and address helpers.

On-chain amounts are 18-decimal fixed point integers and are stored as
decimal integer strings so no precision is lost.
"""

from decimal import Decimal

from indexer.config.constants import TOKEN_DECIMALS


def normalize_address(address: str) -> str:
    """Lower-case an address; addresses are keyed in lower case everywhere."""
    return str(address).lower()


def to_amount_str(value: int) -> str:
    """Render an on-chain integer amount as a decimal string."""
    return str(int(value))


def parse_amount(value: str | int | None) -> int:
    """
    Parse a stored amount back into an integer.

    Args:
        value: Decimal integer string (or int) as written by the indexer

    Returns:
        Integer amount, 0 for missing values
    """
    if value is None or value == "":
        return 0
    return int(value)


def format_ether(value: int, decimals: int = TOKEN_DECIMALS) -> Decimal:
    """Convert a fixed-point integer amount to its decimal magnitude."""
    return Decimal(int(value)) / Decimal(10 ** decimals)


def to_float_ether(value: int, decimals: int = TOKEN_DECIMALS) -> float:
    """
    Convert a fixed-point integer amount to a float magnitude.

    Lossy for large values; used only for the legacy float stats fields.
    """
    return float(format_ether(value, decimals))
