# Market -> currency lookup + display conversion.
# Prices are stored and charged in USD; conversion is display-only and is
# re-derived on every request, never persisted.

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Mapping, Optional

from .errors import ConfigurationError
from .money import round_money, to_decimal


class Market(str, Enum):
    LB = "lb"
    AU = "au"
    EU = "eu"
    AE = "ae"
    SA = "sa"
    QA = "qa"
    INTL = "intl"


MARKET_CURRENCY = {
    Market.LB: "USD",
    Market.AU: "AUD",
    Market.EU: "EUR",
    Market.AE: "AED",
    Market.SA: "SAR",
    Market.QA: "QAR",
    Market.INTL: "USD",
}

# Multiplier of USD. Gulf currencies are pegged; AUD/EUR are reference
# rates, override with the CURRENCY_RATES config.
CURRENCY_RATES = {
    "USD": Decimal("1"),
    "AUD": Decimal("1.55"),
    "EUR": Decimal("0.92"),
    "AED": Decimal("3.6725"),
    "SAR": Decimal("3.75"),
    "QAR": Decimal("3.64"),
}

CURRENCY_SYMBOLS = {
    "USD": "$",
    "AUD": "A$",
    "EUR": "€",
    "AED": "AED ",
    "SAR": "SAR ",
    "QAR": "QAR ",
}

EU_COUNTRIES = {
    "AT", "BE", "BG", "HR", "CY", "CZ", "DK", "EE", "FI", "FR",
    "DE", "GR", "HU", "IE", "IT", "LV", "LT", "LU", "MT", "NL",
    "PL", "PT", "RO", "SK", "SI", "ES", "SE",
    # shown in EUR too
    "GB", "CH", "NO", "IS",
}

CASH_ON_DELIVERY = "cash_on_delivery"
STRIPE = "stripe"


@dataclass(frozen=True)
class ConvertedAmount:
    amount: Decimal
    currency_code: str

    def to_dict(self) -> dict:
        return {"amount": float(self.amount), "currency": self.currency_code}


def is_valid_market(value) -> bool:
    try:
        Market(str(value).strip().lower())
    except ValueError:
        return False
    return True


def parse_market(value) -> Market:
    if isinstance(value, Market):
        return value
    try:
        return Market(str(value).strip().lower())
    except ValueError:
        raise ConfigurationError(f"Unknown market: {value!r}")


def currency_for_market(market) -> str:
    return MARKET_CURRENCY[parse_market(market)]


def rate_for(currency: str, rates: Optional[Mapping] = None) -> Decimal:
    table = CURRENCY_RATES if rates is None else rates
    if currency not in table:
        raise ConfigurationError(f"No exchange rate configured for {currency}")
    return to_decimal(table[currency])


def convert(amount_usd, market, rates: Optional[Mapping] = None) -> ConvertedAmount:
    """USD amount -> display amount for the market, rounded half-up to cents."""
    currency = currency_for_market(market)
    rate = rate_for(currency, rates)
    return ConvertedAmount(round_money(to_decimal(amount_usd) * rate), currency)


def currency_symbol(currency: str) -> str:
    return CURRENCY_SYMBOLS.get(currency, "$")


def format_price(amount, currency: str, show_code: bool = False) -> str:
    text = f"{currency_symbol(currency)}{round_money(amount):,.2f}"
    if show_code:
        return f"{text} {currency}"
    return text


def format_for_market(amount_usd, market, rates: Optional[Mapping] = None, show_code: bool = False) -> str:
    converted = convert(amount_usd, market, rates)
    return format_price(converted.amount, converted.currency_code, show_code)


def market_for_country(country: Optional[str]) -> Market:
    """Geo country code -> pricing market. Unknown/missing -> international."""
    if not country:
        return Market.INTL
    country = country.strip().upper()
    direct = {"LB": Market.LB, "AU": Market.AU, "AE": Market.AE, "SA": Market.SA, "QA": Market.QA}
    if country in direct:
        return direct[country]
    if country in EU_COUNTRIES:
        return Market.EU
    return Market.INTL


def payment_methods_for(market) -> tuple:
    # Only Lebanon offers cash on delivery
    if parse_market(market) == Market.LB:
        return (CASH_ON_DELIVERY, STRIPE)
    return (STRIPE,)
