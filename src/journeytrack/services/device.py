"""Device detection and coarse IP geolocation."""

import re

import httpx
import structlog

from journeytrack.host import HostPage
from journeytrack.models.journey import DeviceInfo, Location

logger = structlog.get_logger()

TABLET_PATTERN = re.compile(r"(tablet|ipad|playbook|silk)|(android(?!.*mobi))", re.IGNORECASE)
MOBILE_PATTERN = re.compile(
    r"Mobile|Android|iP(hone|od)|IEMobile|BlackBerry|Kindle|Silk-Accelerated"
    r"|(hpw|web)OS|Opera M(obi|ini)"
)


def detect_device_type(user_agent: str) -> str:
    if TABLET_PATTERN.search(user_agent):
        return "tablet"
    if MOBILE_PATTERN.search(user_agent):
        return "mobile"
    return "desktop"


def detect_browser(user_agent: str) -> str:
    # Order matters: Chrome's UA also contains "Safari"
    if "Firefox" in user_agent:
        return "Firefox"
    if "Edg" in user_agent:
        return "Edge"
    if "Chrome" in user_agent:
        return "Chrome"
    if "Safari" in user_agent:
        return "Safari"
    return "Unknown"


def detect_os(user_agent: str) -> str:
    if "Android" in user_agent:
        return "Android"
    if "iPhone" in user_agent or "iPad" in user_agent or "iOS" in user_agent:
        return "iOS"
    if "Win" in user_agent:
        return "Windows"
    if "Mac" in user_agent:
        return "MacOS"
    if "Linux" in user_agent:
        return "Linux"
    return "Unknown"


def get_device_info(page: HostPage) -> DeviceInfo:
    """Describe the visitor's device from the host page."""
    user_agent = page.user_agent or ""
    resolution = (
        f"{page.screen_width}x{page.screen_height}"
        if page.screen_width and page.screen_height
        else None
    )
    return DeviceInfo(
        type=detect_device_type(user_agent),
        browser=detect_browser(user_agent),
        os=detect_os(user_agent),
        screen_resolution=resolution,
    )


async def lookup_location(
    url: str,
    timeout: float = 3.0,
    client: httpx.AsyncClient | None = None,
) -> Location | None:
    """Look up the visitor's country via an IP geolocation service.

    Any failure (timeout, HTTP error, rate limit payload) yields None.
    """
    if not url:
        return None

    try:
        if client is not None:
            response = await client.get(url, timeout=timeout)
        else:
            async with httpx.AsyncClient(timeout=timeout) as own_client:
                response = await own_client.get(url)
    except httpx.TimeoutException:
        logger.warning("IP geolocation request timed out", timeout=f"{timeout}s")
        return None
    except httpx.HTTPError as e:
        logger.warning("IP geolocation failed", error=str(e))
        return None

    if not response.is_success:
        logger.warning("IP geolocation API request failed", status=response.status_code)
        return None

    try:
        geo = response.json()
    except ValueError:
        return None

    if not isinstance(geo, dict) or geo.get("error"):
        logger.warning(
            "IP geolocation API returned error",
            error=(geo or {}).get("reason") if isinstance(geo, dict) else None,
        )
        return None

    return Location(
        country=geo.get("country") or geo.get("country_name"),
        country_code=geo.get("country_code"),
        timezone=geo.get("timezone"),
        source="ipapi",
    )
