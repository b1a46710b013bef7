"""
Built-in Catalog Data

The default categories, the supported currencies and the bundled
exchange rate table. These are the values a brand new account starts
with and the values the rate store falls back to when it is offline.

DESIGN DECISION: Default category ids are stable ("cat-1" ... "cat-8").
Expenses reference categories by name, but protection and fallback
logic always keys on these ids so a rename can never "unprotect" them.
"""

from typing import Optional

from tripbudget.models.trip import Category


# =============================================================================
# CATEGORIES
# =============================================================================

DEFAULT_CATEGORIES: tuple[Category, ...] = (
    Category(id="cat-1", name="Cibo", icon="🍔"),
    Category(id="cat-2", name="Alloggio", icon="🏠"),
    Category(id="cat-3", name="Trasporti", icon="🚆"),
    Category(id="cat-4", name="Attività", icon="🏞️"),
    Category(id="cat-5", name="Shopping", icon="🛍️"),
    Category(id="cat-6", name="Visti", icon="🛂"),
    Category(id="cat-7", name="Assicurazione", icon="🛡️"),
    Category(id="cat-8", name="Varie", icon="📦"),
)

DEFAULT_CATEGORY_IDS: frozenset[str] = frozenset(c.id for c in DEFAULT_CATEGORIES)

# Absorbs expenses whose category was deleted
FALLBACK_CATEGORY_ID = "cat-8"

CUSTOM_CATEGORY_ID_PREFIX = "custom-cat-"


# =============================================================================
# CURRENCIES
# =============================================================================

COUNTRIES_CURRENCIES: dict[str, str] = {
    "Thailandia": "THB",
    "Vietnam": "VND",
    "Cambogia": "KHR",
    "Laos": "LAK",
    "Malesia": "MYR",
    "Singapore": "SGD",
    "Indonesia": "IDR",
    "Filippine": "PHP",
    "Giappone": "JPY",
    "Corea del Sud": "KRW",
    "Cina": "CNY",
    "Stati Uniti": "USD",
    "Area Euro": "EUR",
    "Regno Unito": "GBP",
}


def _invert_country_map(mapping: dict[str, str]) -> dict[str, str]:
    """Map each currency to the first country that uses it."""
    inverted: dict[str, str] = {}
    for country, currency in mapping.items():
        inverted.setdefault(currency, country)
    return inverted


CURRENCY_TO_COUNTRY: dict[str, str] = _invert_country_map(COUNTRIES_CURRENCIES)

PIVOT_CURRENCY = "EUR"

# Units of each currency per one EUR
DEFAULT_EXCHANGE_RATES: dict[str, float] = {
    "EUR": 1.0,
    "USD": 1.08,
    "GBP": 0.85,
    "THB": 39.50,
    "VND": 27500.0,
    "KHR": 4400.0,
    "LAK": 23500.0,
    "MYR": 5.10,
    "SGD": 1.46,
    "IDR": 17500.0,
    "PHP": 63.50,
    "JPY": 168.0,
    "KRW": 1480.0,
    "CNY": 7.80,
}


def default_categories() -> list[Category]:
    """Fresh list of the default categories, in catalog order."""
    return list(DEFAULT_CATEGORIES)


def is_default_category(category_id: str) -> bool:
    return category_id in DEFAULT_CATEGORY_IDS


def suggest_currencies(
    countries: list[str],
    main_currency: str,
    preferred: Optional[list[str]] = None,
) -> list[str]:
    """
    Suggest preferred currencies for a set of destination countries.

    The main currency always comes first, followed by the currencies of
    the given countries and then any already-preferred currencies.
    Duplicates are dropped, order of first appearance is kept.
    """
    suggested = [COUNTRIES_CURRENCIES[c] for c in countries if c in COUNTRIES_CURRENCIES]
    return list(dict.fromkeys([main_currency, *suggested, *(preferred or [])]))
