"""Tests for traffic source classification and entry capture."""

import pytest
from pydantic import ValidationError

from journeytrack.host import HostPage
from journeytrack.models.traffic import TrafficType
from journeytrack.services.traffic_capture import (
    capture_entry_page,
    classify_referrer,
    classify_traffic_source,
    classify_traffic_type,
    extract_search_keyword,
    validate_captured_data,
)


def classify(url: str, referrer: str | None = None, title: str = "Home", now=None):
    page = HostPage(url=url, title=title, referrer=referrer)
    capture = capture_entry_page(page, now)
    return capture, classify_traffic_source(capture, page.hostname)


class TestClassifyTrafficSource:
    """Tests for classify_traffic_source."""

    def test_utm_email_wins_over_referrer(self, clock):
        """UTM parameters take priority over any referrer."""
        _, source = classify(
            "https://shop.example.com/?utm_source=newsletter&utm_medium=email",
            referrer="https://www.google.com/search?q=shoes",
            now=clock(),
        )

        assert source.type == TrafficType.EMAIL
        assert source.source == "newsletter"
        assert source.medium == "email"

    def test_utm_campaign_and_term(self, clock):
        """Campaign and keyword are taken from UTM parameters."""
        _, source = classify(
            "https://shop.example.com/?utm_source=google&utm_medium=cpc"
            "&utm_campaign=spring&utm_term=running+shoes",
            now=clock(),
        )

        assert source.type == TrafficType.PAID
        assert source.campaign == "spring"
        assert source.keyword == "running shoes"

    def test_utm_without_medium(self, clock):
        """A bare UTM source records an unknown medium."""
        _, source = classify("https://shop.example.com/?utm_source=partner", now=clock())

        assert source.type == TrafficType.OTHER
        assert source.medium == "unknown"

    def test_search_referrer_with_keyword(self, clock):
        """Search engine referrers are organic search with the query extracted."""
        _, source = classify(
            "https://shop.example.com/",
            referrer="https://www.google.com/search?q=trail+shoes",
            now=clock(),
        )

        assert source.type == TrafficType.SEARCH
        assert source.source == "www.google.com"
        assert source.medium == "organic"
        assert source.keyword == "trail shoes"

    def test_social_referrer(self, clock):
        _, source = classify(
            "https://shop.example.com/",
            referrer="https://www.facebook.com/some/post",
            now=clock(),
        )

        assert source.type == TrafficType.SOCIAL
        assert source.medium == "social"

    def test_internal_referrer(self, clock):
        """A referrer on the same host is internal."""
        _, source = classify(
            "https://shop.example.com/cart",
            referrer="https://shop.example.com/products",
            now=clock(),
        )

        assert source.type == TrafficType.INTERNAL
        assert source.source == "internal"

    def test_other_referrer(self, clock):
        _, source = classify(
            "https://shop.example.com/",
            referrer="https://blog.example.org/review",
            now=clock(),
        )

        assert source.type == TrafficType.REFERRAL
        assert source.source == "blog.example.org"

    def test_direct(self, clock):
        """No UTM and no referrer is direct."""
        _, source = classify("https://shop.example.com/", now=clock())

        assert source.type == TrafficType.DIRECT
        assert source.source == "(direct)"
        assert source.medium == "none"


class TestClassifiers:
    """Tests for the keyword classifiers."""

    @pytest.mark.parametrize(
        "source,medium,expected",
        [
            ("google", "cpc", TrafficType.PAID),
            ("facebook", None, TrafficType.SOCIAL),
            ("anything", "social", TrafficType.SOCIAL),
            ("newsletter", None, TrafficType.EMAIL),
            ("bing", None, TrafficType.SEARCH),
            ("partner", "referral", TrafficType.REFERRAL),
            ("partner", "print", TrafficType.OTHER),
            (None, None, TrafficType.DIRECT),
        ],
    )
    def test_classify_traffic_type(self, source, medium, expected):
        assert classify_traffic_type(source, medium) == expected

    @pytest.mark.parametrize(
        "hostname,expected",
        [
            ("duckduckgo.com", TrafficType.SEARCH),
            ("www.linkedin.com", TrafficType.SOCIAL),
            ("outlook.live.com", TrafficType.EMAIL),
            ("news.example.net", TrafficType.REFERRAL),
        ],
    )
    def test_classify_referrer(self, hostname, expected):
        assert classify_referrer(hostname)[0] == expected

    @pytest.mark.parametrize(
        "referrer,expected",
        [
            ("https://www.bing.com/search?q=boots", "boots"),
            ("https://search.yahoo.com/search?p=sandals", "sandals"),
            ("https://www.baidu.com/s?wd=xie", "xie"),
            ("https://example.com/", None),
        ],
    )
    def test_extract_search_keyword(self, referrer, expected):
        assert extract_search_keyword(referrer) == expected


class TestEntryCapture:
    """Tests for the entry page snapshot."""

    def test_capture_survives_navigation(self, clock):
        """Later URL changes do not touch the captured entry page."""
        page = HostPage(url="https://shop.example.com/landing?utm_source=x", title="Landing")
        capture = capture_entry_page(page, clock())

        page.history.push_state("/checkout", "Checkout")

        assert page.url == "https://shop.example.com/checkout"
        assert capture.url == "https://shop.example.com/landing?utm_source=x"
        assert capture.title == "Landing"
        assert capture.first_param("utm_source") == "x"

    def test_capture_is_frozen(self, clock):
        page = HostPage(url="https://shop.example.com/", title="Home")
        capture = capture_entry_page(page, clock())

        with pytest.raises(ValidationError):
            capture.url = "https://elsewhere.example.com/"

    def test_entry_page_payload(self, clock):
        page = HostPage(url="https://shop.example.com/", title="Home")
        capture = capture_entry_page(page, clock())

        assert capture.entry_page() == {
            "url": "https://shop.example.com/",
            "title": "Home",
            "timestamp": clock().isoformat(),
        }


class TestValidateCapturedData:
    """Tests for validate_captured_data."""

    def test_complete_capture(self, clock):
        capture, source = classify("https://shop.example.com/", title="Home", now=clock())
        assert validate_captured_data(capture, source) == []

    def test_missing_title(self, clock):
        capture, source = classify("https://shop.example.com/", title="", now=clock())
        assert validate_captured_data(capture, source) == ["Entry page title not captured"]
