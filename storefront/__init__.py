from .currency import Market, convert
from .errors import ConfigurationError, InvalidOrderError, ValidationError
from .orders import assemble_order, make_line_item
from .pricing import compute_price
from .promos import DiscountSpec, compute_discount, compute_payout

__all__ = [
    "Market",
    "convert",
    "ConfigurationError",
    "InvalidOrderError",
    "ValidationError",
    "assemble_order",
    "make_line_item",
    "compute_price",
    "DiscountSpec",
    "compute_discount",
    "compute_payout",
]
