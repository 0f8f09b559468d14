"""Traffic source classification and entry page capture.

Runs synchronously when a tracker is constructed, before a single-page-app
router can rewrite the URL. The results are frozen for the lifetime of the
tracker.
"""

from datetime import datetime
from urllib.parse import parse_qs, urlsplit

import structlog

from journeytrack.host import HostPage
from journeytrack.models.traffic import EntryCapture, TrafficSource, TrafficType

logger = structlog.get_logger()

SEARCH_ENGINES = (
    "google",
    "bing",
    "yahoo",
    "duckduckgo",
    "baidu",
    "yandex",
    "ask",
    "aol",
    "ecosia",
)

SOCIAL_SITES = (
    "facebook",
    "fb.com",
    "twitter",
    "t.co",
    "linkedin",
    "instagram",
    "tiktok",
    "youtube",
    "reddit",
    "pinterest",
    "snapchat",
    "whatsapp",
    "telegram",
)

EMAIL_CLIENTS = ("mail.google", "outlook", "yahoo.mail", "protonmail")

# Query parameters carrying the search phrase: Google/Bing/DuckDuckGo, Yahoo, Baidu
SEARCH_KEYWORD_PARAMS = ("q", "p", "wd")

PAID_MEDIUM_MARKERS = ("cpc", "ppc", "paid", "ad")
UTM_SOCIAL_SOURCES = ("facebook", "twitter", "linkedin", "instagram", "tiktok")
UTM_SEARCH_SOURCES = ("google", "bing", "yahoo", "duckduckgo")

DIRECT_SOURCE = TrafficSource(
    type=TrafficType.DIRECT,
    source="(direct)",
    medium="none",
)


def capture_entry_page(page: HostPage, now: datetime) -> EntryCapture:
    """Snapshot the page the visitor landed on."""
    return EntryCapture(
        url=page.url,
        title=page.title,
        referrer=page.referrer,
        timestamp=now,
        query_params=parse_qs(urlsplit(page.url).query),
    )


def classify_traffic_type(source: str | None, medium: str | None) -> TrafficType:
    """Classify UTM source/medium into a traffic type.

    Checked in priority order: paid, social, email, search, referral.
    """
    if not source:
        return TrafficType.DIRECT

    lower_source = source.lower()
    lower_medium = (medium or "").lower()

    if any(marker in lower_medium for marker in PAID_MEDIUM_MARKERS):
        return TrafficType.PAID

    if lower_medium == "social" or any(s in lower_source for s in UTM_SOCIAL_SOURCES):
        return TrafficType.SOCIAL

    if lower_medium == "email" or "email" in lower_source or "newsletter" in lower_source:
        return TrafficType.EMAIL

    if lower_medium == "organic" or any(s in lower_source for s in UTM_SEARCH_SOURCES):
        return TrafficType.SEARCH

    if lower_medium == "referral":
        return TrafficType.REFERRAL

    return TrafficType.OTHER


def classify_referrer(hostname: str) -> tuple[TrafficType, str]:
    """Classify an external referrer hostname.

    Returns:
        Tuple of (traffic type, medium).
    """
    lower_host = hostname.lower()

    if any(engine in lower_host for engine in SEARCH_ENGINES):
        return TrafficType.SEARCH, "organic"

    if any(site in lower_host for site in SOCIAL_SITES):
        return TrafficType.SOCIAL, "social"

    if any(client in lower_host for client in EMAIL_CLIENTS):
        return TrafficType.EMAIL, "email"

    return TrafficType.REFERRAL, "referral"


def extract_search_keyword(referrer: str) -> str | None:
    """Extract the search phrase from a referrer URL, if any."""
    params = parse_qs(urlsplit(referrer).query)
    for name in SEARCH_KEYWORD_PARAMS:
        values = params.get(name)
        if values and values[0]:
            return values[0]
    return None


def classify_traffic_source(capture: EntryCapture, page_hostname: str) -> TrafficSource:
    """Determine the traffic source of an entry capture.

    Priority: UTM parameters, then the referrer, then direct.

    Args:
        capture: Entry page snapshot.
        page_hostname: Hostname of the host page, for internal referrers.

    Returns:
        Frozen TrafficSource.
    """
    utm_source = capture.first_param("utm_source")
    if utm_source:
        utm_medium = capture.first_param("utm_medium")
        keyword = (
            capture.first_param("utm_term")
            or capture.first_param("q")
            or capture.first_param("keyword")
        )
        return TrafficSource(
            type=classify_traffic_type(utm_source, utm_medium),
            source=utm_source,
            medium=utm_medium or "unknown",
            campaign=capture.first_param("utm_campaign"),
            keyword=keyword,
        )

    if capture.referrer:
        try:
            referrer_host = urlsplit(capture.referrer).hostname
        except ValueError as e:
            logger.warning("Failed to parse referrer", error=str(e))
            referrer_host = None

        if referrer_host:
            if referrer_host == page_hostname:
                return TrafficSource(
                    type=TrafficType.INTERNAL,
                    source="internal",
                    medium="referral",
                )

            traffic_type, medium = classify_referrer(referrer_host)
            return TrafficSource(
                type=traffic_type,
                source=referrer_host,
                medium=medium,
                keyword=extract_search_keyword(capture.referrer),
            )

    return DIRECT_SOURCE


def validate_captured_data(capture: EntryCapture, traffic_source: TrafficSource) -> list[str]:
    """Check that the construction-time capture looks complete.

    Returns:
        Human-readable issues, empty if the capture is complete.
    """
    issues = []

    if (not traffic_source.source or traffic_source.source == "(direct)") and capture.referrer:
        issues.append("Referrer exists but not captured properly")

    if not capture.url:
        issues.append("Entry page URL not captured")

    if not capture.title:
        issues.append("Entry page title not captured")

    return issues
