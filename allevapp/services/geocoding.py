"""Farm geocoding (OpenStreetMap Nominatim) and map links."""
import logging
from typing import Optional, Dict, List, Any
from urllib.parse import quote

import requests

from allevapp.config import settings

logger = logging.getLogger(__name__)

DEFAULT_CENTER = {"lat": 45.4642, "lng": 9.1900}  # Milano
USER_AGENT = "AllevApp/1.0"


def geocode_address(address: str) -> Optional[Dict[str, float]]:
    """Coordinates for an Italian address, or None when it cannot be resolved"""
    if not address or not address.strip():
        return None

    try:
        response = requests.get(
            settings.nominatim_url,
            params={
                "format": "json",
                "q": f"{address}, Italia",
                "limit": 1,
                "countrycodes": "it",
                "addressdetails": 1,
            },
            headers={"User-Agent": USER_AGENT},
            timeout=10
        )
        response.raise_for_status()
        data = response.json()
    except (requests.RequestException, ValueError) as e:
        logger.warning(f"Geocoding failed for '{address}': {e}")
        return None

    if not data:
        return None
    try:
        return {"lat": float(data[0]["lat"]), "lng": float(data[0]["lon"])}
    except (KeyError, TypeError, ValueError):
        return None


def map_links(address: Optional[str], coordinates: Optional[Dict[str, float]]) -> Dict[str, Optional[str]]:
    if coordinates:
        point = f"{coordinates['lat']},{coordinates['lng']}"
        return {
            "view": f"https://www.google.com/maps?q={point}",
            "directions": f"https://www.google.com/maps/dir/?api=1&destination={point}",
        }
    if address:
        encoded = quote(address)
        return {
            "view": f"https://www.google.com/maps/search/?api=1&query={encoded}",
            "directions": f"https://www.google.com/maps/dir/?api=1&destination={encoded}",
        }
    return {"view": None, "directions": None}


def map_center(points: List[Optional[Dict[str, float]]]) -> Dict[str, float]:
    """Mean of the resolved coordinates; Milano when none resolved"""
    resolved = [p for p in points if p]
    if not resolved:
        return dict(DEFAULT_CENTER)
    return {
        "lat": sum(p["lat"] for p in resolved) / len(resolved),
        "lng": sum(p["lng"] for p in resolved) / len(resolved),
    }


def farms_map(farms) -> Dict[str, Any]:
    items = []
    for farm in farms:
        coordinates = geocode_address(farm.address)
        items.append({
            "id": farm.id,
            "name": farm.name,
            "address": farm.address,
            "company": farm.company,
            "coordinates": coordinates,
            "links": map_links(farm.address, coordinates),
        })
    return {"center": map_center([i["coordinates"] for i in items]), "farms": items}
