"""
Public holiday API client
Fetches French public holidays per year from calendrier.api.gouv.fr

Documentation: https://calendrier.api.gouv.fr/
Response shape: {"2024-01-01": "1er janvier", ...}
"""

import logging
from typing import Dict, Iterable

import requests

from clinicflow.config import DEFAULT_HOLIDAY_ZONE, HOLIDAY_API_BASE_URL

logger = logging.getLogger(__name__)


class HolidayClient:
    """
    Client for the public holiday REST API
    """

    def __init__(
        self,
        zone: str = DEFAULT_HOLIDAY_ZONE,
        base_url: str = HOLIDAY_API_BASE_URL,
        timeout: float = 30,
    ):
        """
        Initialize holiday client

        Args:
            zone: Holiday zone (metropole, alsace-moselle, guadeloupe, ...)
            base_url: Base URL for the holiday API
            timeout: Request timeout in seconds
        """
        self.zone = zone
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout

        self.session = requests.Session()
        self.session.headers.update({'Accept': 'application/json'})

    def get_holidays(self, year: int) -> Dict[str, str]:
        """
        Retrieve holidays for one calendar year

        Args:
            year: Calendar year

        Returns:
            Mapping ISO date -> holiday name; {} if the request fails
        """
        endpoint = f"{self.base_url}/{self.zone}/{year}.json"

        logger.info(f"Fetching holidays for {self.zone} {year}")

        try:
            response = self.session.get(endpoint, timeout=self.timeout)
            response.raise_for_status()

            data = response.json()
            logger.info(f"Retrieved {len(data)} holidays for {year}")
            return {str(k): str(v) for k, v in data.items()}

        except (requests.exceptions.RequestException, ValueError) as e:
            logger.error(f"Error fetching holidays for {year}: {e}")
            return {}


def fetch_holidays(client: HolidayClient, years: Iterable[int]) -> Dict[str, str]:
    """
    Fetch and merge holidays for several years

    Args:
        client: HolidayClient instance
        years: Years to fetch (later years win on duplicate keys)

    Returns:
        Merged mapping ISO date -> holiday name
    """
    merged: Dict[str, str] = {}
    for year in years:
        merged.update(client.get_holidays(year))
    return merged
