"""
assistant.tools.geo

IP geolocation: map a client address to a city name.

Configuration (passed in from util/settings.py):
- api_url       IP_GEOLOCATION_API (default: http://ip-api.com/json/, the IP is appended)
- default_city  DEFAULT_CITY (default: Tokyo, used for loopback addresses during local development)
"""

import logging

from util.http import get_json


logger = logging.getLogger(__name__)

DEFAULT_API_URL = "http://ip-api.com/json/"
DEFAULT_CITY = "Tokyo"
LOOPBACK = {"::1", "127.0.0.1", "localhost", "::ffff:127.0.0.1"}


def city_from_ip(ip, api_url=DEFAULT_API_URL, default_city=DEFAULT_CITY, timeout=None):
    """Return the city for `ip`, or None. Lookup failures are logged, never raised."""
    if not ip:
        return None
    if ip in LOOPBACK:
        return default_city
    try:
        data = get_json(f"{api_url}{ip}", timeout=timeout)
    except Exception as exc:
        logger.warning("IP geolocation failed for %s: %s", ip, exc)
        return None
    if isinstance(data, dict) and data.get("status") == "success":
        return data.get("city") or None
    logger.debug("IP geolocation had no city for %s", ip)
    return None
