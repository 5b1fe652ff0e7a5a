import logging
from typing import Tuple, Union

import requests

from config import settings

logger = logging.getLogger(__name__)


def _get_json(url: str, timeout: float):
    r = requests.get(url, timeout=timeout)
    r.raise_for_status()
    return r.json()


def fetch_countries(url: str = None, timeout: float = None) -> Tuple[bool, Union[list, str]]:
    """Fetches the country catalog from the external API.

    Returns (success, countries) or (False, cause) when the request failed,
    timed out or the payload was not a list of records.
    """
    url = url or settings.countries_api_url
    try:
        data = _get_json(url, timeout or settings.fetch_timeout)
    except (requests.RequestException, ValueError) as e:
        logger.error("countries fetch failed: %s", e)
        return False, "Could not fetch data from Countries API"
    if not isinstance(data, list):
        return False, "Countries API payload invalid"
    return True, data


def fetch_exchange_rates(url: str = None, timeout: float = None) -> Tuple[bool, Union[dict, str]]:
    url = url or settings.exchange_api_url
    try:
        data = _get_json(url, timeout or settings.fetch_timeout)
    except (requests.RequestException, ValueError) as e:
        logger.error("exchange rates fetch failed: %s", e)
        return False, "Could not fetch data from Exchange Rates API"
    rates = data.get("rates") if isinstance(data, dict) else None
    if not isinstance(rates, dict):
        return False, "Exchange rates payload invalid"
    return True, rates
