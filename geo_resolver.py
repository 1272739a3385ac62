import asyncio
import logging
from typing import Optional

import aiohttp

from models import GeoRecord

log = logging.getLogger(__name__)

# ip-api field mask: status, message, country, city, lat, lon, isp, org,
# proxy, hosting, query (and the rest of the standard set).
GEO_FIELDS = 66846719


class GeoResolver:
    """Best-effort lookup of where a network address comes from.

    The result is advisory only, so every failure is logged and turned into
    ``None``; nothing here ever raises to the caller.
    """

    def __init__(self, session: aiohttp.ClientSession, base_url: str = "http://ip-api.com", timeout: float = 10.0):
        self.session = session
        self.base_url = base_url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout)

    async def resolve(self, address: str) -> Optional[GeoRecord]:
        if not address:
            return None

        url = f"{self.base_url}/json/{address}"
        try:
            async with self.session.get(url, params={"fields": str(GEO_FIELDS)}, timeout=self.timeout) as response:
                if response.status != 200:
                    log.warning("Geo lookup for %s returned HTTP %s", address, response.status)
                    return None
                data = await response.json(content_type=None)
        except asyncio.TimeoutError:
            log.warning("Geo lookup for %s timed out", address)
            return None
        except (aiohttp.ClientError, ValueError) as e:
            log.warning("Geo lookup for %s failed: %s", address, e)
            return None

        if not isinstance(data, dict) or data.get("status") != "success":
            log.warning("Geo lookup for %s was not successful: %r", address, data)
            return None

        try:
            return GeoRecord(
                address=data.get("query") or address,
                country=data.get("country"),
                city=data.get("city"),
                isp=data.get("isp"),
                org=data.get("org"),
                is_proxy=bool(data.get("proxy", False)),
                is_hosting=bool(data.get("hosting", False)),
                latitude=_coordinate(data.get("lat")),
                longitude=_coordinate(data.get("lon")),
            )
        except (TypeError, ValueError) as e:
            log.warning("Geo lookup for %s returned a malformed body: %s", address, e)
            return None


def _coordinate(value):
    if value is None:
        return None
    return float(value)
