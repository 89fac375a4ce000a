"""
Forward and reverse geocoding against a Nominatim-compatible service.
"""

import logging
import re
from typing import Dict, List, Optional

import requests

from .config import config, load_region_rules
from .exceptions import NetworkError
from .models import Coordinates

logger = logging.getLogger(__name__)

_DIGIT = re.compile(r"\d")


def normalize_query(address: str) -> str:
    """
    Strip a leading facility or business name from an address.

    The text is split on commas; when the first token containing a digit is
    not the first token, everything before it is dropped.

        "ACME Motors, 123 Main St, Springfield" -> "123 Main St, Springfield"
    """
    query = address.strip()
    parts = [p.strip() for p in query.split(",") if p.strip()]
    for idx, part in enumerate(parts):
        if _DIGIT.search(part):
            return ", ".join(parts[idx:]) if idx > 0 else query
    return query


def country_restriction(address: str, rules: List[Dict]) -> Optional[str]:
    """Return the country code of the first region rule the address matches."""
    for rule in rules:
        for keyword in rule.get("keywords", []):
            if re.search(r"\b%s\b" % re.escape(keyword), address, re.IGNORECASE):
                return rule["country_code"]
        for code in rule.get("trailing_codes", []):
            if re.search(r",\s*%s\s*$" % re.escape(code), address, re.IGNORECASE):
                return rule["country_code"]
    return None


class GeocodingClient:
    """
    Stateless wrapper around the geocoder's search and reverse endpoints.

    One request per call, no retry and no caching. Non-success statuses and
    unusable bodies read as "no result"; transport failures raise NetworkError.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        session: Optional[requests.Session] = None,
        region_rules: Optional[List[Dict]] = None,
        user_agent: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.base_url = (base_url or config.GEOCODER_URL).rstrip("/")
        self.session = session or requests.Session()
        self.region_rules = region_rules if region_rules is not None else load_region_rules()
        self.session.headers.update({"User-Agent": user_agent or config.GEOCODER_USER_AGENT})
        self.timeout = timeout if timeout is not None else config.HTTP_TIMEOUT

    def build_search_params(self, address: str) -> Optional[Dict[str, str]]:
        """Query parameters for a forward lookup, or None for a blank address."""
        query = address.strip()
        if not query:
            return None
        params = {"format": "json", "limit": "1", "q": normalize_query(query)}
        country = country_restriction(query, self.region_rules)
        if country:
            params["countrycodes"] = country
        return params

    def forward(self, address: str) -> Optional[Coordinates]:
        """
        Resolve an address to coordinates.

        Args:
            address: Free-text address as typed by the user

        Returns:
            Coordinates of the first candidate, or None
        """
        params = self.build_search_params(address)
        if params is None:
            return None

        data = self._get("/search", params)
        if not isinstance(data, list) or not data or not isinstance(data[0], dict):
            return None
        return Coordinates.parse(data[0].get("lat"), data[0].get("lon"))

    def reverse(self, lat: float, lng: float) -> Optional[str]:
        """Resolve coordinates to the geocoder's display name, or None."""
        data = self._get("/reverse", {"format": "json", "lat": str(lat), "lon": str(lng)})
        if not isinstance(data, dict):
            return None
        display_name = data.get("display_name")
        return display_name if isinstance(display_name, str) and display_name else None

    def _get(self, path: str, params: Dict[str, str]):
        try:
            response = self.session.get(self.base_url + path, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            raise NetworkError(f"Geocoder request failed: {e}")

        if not response.ok:
            logger.debug("Geocoder %s answered %s", path, response.status_code)
            return None
        try:
            return response.json()
        except ValueError:
            logger.debug("Geocoder %s returned a non-JSON body", path)
            return None
