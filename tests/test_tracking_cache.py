"""
Tests for the activity tracking cache.
"""

import pytest

from storefront_pricing.services.tracking_cache import ActivityTracker


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class TestActivityTracker:
    """Tests for ActivityTracker."""

    @pytest.fixture
    def clock(self) -> FakeClock:
        return FakeClock()

    @pytest.fixture
    def tracker(self, clock: FakeClock) -> ActivityTracker:
        return ActivityTracker(window_seconds=3600, clock=clock)

    def test_records_signals(self, tracker: ActivityTracker) -> None:
        """Test each event type feeds its own counter."""
        tracker.record_view("p1")
        tracker.record("product_click", "p1")
        tracker.record_cart_add("p1")
        tracker.record_purchase("p1", quantity=3)

        signals = tracker.signals("p1")

        assert signals.views_24h == 2
        assert signals.cart_adds_24h == 1
        assert signals.sales_24h == 3
        assert tracker.has_activity("p1") is True

    def test_untracked_events_ignored(self, tracker: ActivityTracker) -> None:
        """Test unknown events, empty ids and non-positive counts are rejected."""
        assert tracker.record("wishlist_add", "p1") is False
        assert tracker.record("product_view", "") is False
        assert tracker.record("purchase", "p1", count=0) is False
        assert tracker.has_activity("p1") is False

    def test_unknown_product_has_zero_signals(self, tracker: ActivityTracker) -> None:
        """Test signals for a product with no events."""
        signals = tracker.signals("nope")
        assert (signals.views_24h, signals.cart_adds_24h, signals.sales_24h) == (0, 0, 0)

    def test_window_expiry(self, tracker: ActivityTracker, clock: FakeClock) -> None:
        """Test events older than the window stop counting."""
        tracker.record_view("p1")
        clock.advance(1800)
        tracker.record_view("p1")
        clock.advance(1801)

        assert tracker.signals("p1").views_24h == 1

    def test_cleanup_forgets_idle_products(self, tracker: ActivityTracker, clock: FakeClock) -> None:
        """Test cleanup drops products with no events in the window."""
        tracker.record_view("old")
        clock.advance(4000)
        tracker.record_view("fresh")

        assert tracker.cleanup() == 1
        assert tracker.has_activity("old") is False
        assert tracker.has_activity("fresh") is True

    def test_hot_products_ranking(self, tracker: ActivityTracker) -> None:
        """Test purchases outweigh views in the hot list."""
        for _ in range(6):
            tracker.record_view("viewed")
        tracker.record_purchase("bought")

        hot = tracker.get_hot_products(limit=2)

        assert [item["product_id"] for item in hot] == ["bought", "viewed"]
        assert hot[0]["score"] == 5
        assert hot[1]["score"] == 3

    def test_clear(self, tracker: ActivityTracker) -> None:
        """Test clear forgets everything."""
        tracker.record_view("p1")
        tracker.clear()
        assert tracker.has_activity("p1") is False
