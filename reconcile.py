"""Per-record merge of catalog data with the exchange-rate table."""
import numbers
import random
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple, Union

MULTIPLIER_MIN = 1000
MULTIPLIER_MAX = 2000


@dataclass
class CountryRecord:
    name: str
    population: int
    capital: Optional[str] = None
    region: Optional[str] = None
    currency_code: Optional[str] = None
    exchange_rate: Optional[float] = None
    estimated_gdp: Optional[float] = None
    flag_url: Optional[str] = None
    last_refreshed_at: Optional[datetime] = None


def make_multiplier(rng: random.Random) -> int:
    return rng.randint(MULTIPLIER_MIN, MULTIPLIER_MAX)


def estimate_gdp(population: int, rate: float, rng: random.Random) -> float:
    return population * make_multiplier(rng) / rate


def _first_currency_code(raw: dict) -> Optional[str]:
    currencies = raw.get("currencies") or []
    if not isinstance(currencies, list) or not currencies:
        return None
    first = currencies[0] or {}
    code = first.get("code") if isinstance(first, dict) else None
    return code if isinstance(code, str) and code else None


def _lookup_rate(rates: dict, code: str) -> Optional[float]:
    rate = rates.get(code)
    if isinstance(rate, bool) or not isinstance(rate, numbers.Real):
        return None
    rate = float(rate)
    return rate if rate > 0 else None


def reconcile(
    raw: dict,
    rates: dict,
    refreshed_at: datetime,
    rng: random.Random,
) -> Tuple[bool, Union[CountryRecord, str]]:
    """Validate one raw catalog entry and merge in its exchange rate.

    Returns (True, record) or (False, reason) when the entry has to be
    skipped. Only a missing name or a non-positive population cause a skip.
    """
    if not isinstance(raw, dict):
        return False, "record is not an object"

    name = raw.get("name")
    if not isinstance(name, str) or not name:
        return False, "missing name"

    population = raw.get("population")
    if isinstance(population, float) and population.is_integer():
        population = int(population)
    if isinstance(population, bool) or not isinstance(population, numbers.Integral):
        return False, f"{name}: missing population"
    if population <= 0:
        return False, f"{name}: population must be positive"

    currency_code = _first_currency_code(raw)
    if currency_code is None:
        exchange_rate = None
        estimated_gdp = 0
    else:
        exchange_rate = _lookup_rate(rates, currency_code)
        if exchange_rate is None:
            estimated_gdp = None
        else:
            estimated_gdp = estimate_gdp(population, exchange_rate, rng)

    return True, CountryRecord(
        name=name,
        population=int(population),
        capital=raw.get("capital"),
        region=raw.get("region"),
        currency_code=currency_code,
        exchange_rate=exchange_rate,
        estimated_gdp=estimated_gdp,
        flag_url=raw.get("flag"),
        last_refreshed_at=refreshed_at,
    )
