"""
Activity tracking cache.

In-memory record of product views, add-to-cart events and purchases over a
rolling window. The pricing pass reads demand signals from here.
"""

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Callable

from storefront_pricing.pricing.models import DemandSignals

logger = logging.getLogger(__name__)

VIEW_EVENTS = frozenset({"product_view", "product_click", "product_impression"})
CART_EVENTS = frozenset({"add_to_cart"})
PURCHASE_EVENTS = frozenset({"purchase"})

DEFAULT_WINDOW_SECONDS = 24 * 3600


@dataclass
class _ProductActivity:
    views: deque = field(default_factory=deque)
    cart_adds: deque = field(default_factory=deque)
    purchases: deque = field(default_factory=deque)

    def prune(self, cutoff: float) -> None:
        for events in (self.views, self.cart_adds, self.purchases):
            while events and events[0] < cutoff:
                events.popleft()

    def is_empty(self) -> bool:
        return not (self.views or self.cart_adds or self.purchases)


class ActivityTracker:
    """
    Rolling-window demand counters per product.

    Thread-safe. Construct once and share between the web layer (which
    records events) and the pricing service (which reads signals).

    Attributes:
        window_seconds: Length of the rolling window.
    """

    def __init__(
        self,
        window_seconds: int = DEFAULT_WINDOW_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.window_seconds = window_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._products: dict[str, _ProductActivity] = {}

    def record(self, event: str, product_id: str, count: int = 1) -> bool:
        """
        Record an activity event.

        Args:
            event: Event name (product_view, add_to_cart, purchase, ...).
            product_id: Product the event refers to.
            count: Number of occurrences (e.g. quantity purchased).

        Returns:
            bool: False if the event type is not tracked.
        """
        if not product_id or count <= 0:
            return False

        if event in VIEW_EVENTS:
            attr = "views"
        elif event in CART_EVENTS:
            attr = "cart_adds"
        elif event in PURCHASE_EVENTS:
            attr = "purchases"
        else:
            logger.debug(f"Ignoring untracked event: {event}")
            return False

        now = self._clock()
        with self._lock:
            activity = self._products.setdefault(str(product_id), _ProductActivity())
            getattr(activity, attr).extend([now] * count)
        return True

    def record_view(self, product_id: str) -> bool:
        return self.record("product_view", product_id)

    def record_cart_add(self, product_id: str) -> bool:
        return self.record("add_to_cart", product_id)

    def record_purchase(self, product_id: str, quantity: int = 1) -> bool:
        return self.record("purchase", product_id, quantity)

    def signals(self, product_id: str) -> DemandSignals:
        """Demand counts for a product within the rolling window."""
        cutoff = self._clock() - self.window_seconds
        with self._lock:
            activity = self._products.get(str(product_id))
            if activity is None:
                return DemandSignals()
            activity.prune(cutoff)
            return DemandSignals(
                views_24h=len(activity.views),
                cart_adds_24h=len(activity.cart_adds),
                sales_24h=len(activity.purchases),
            )

    def has_activity(self, product_id: str) -> bool:
        with self._lock:
            return str(product_id) in self._products

    def get_hot_products(self, limit: int = 10) -> list[dict]:
        """Products ranked by weighted activity (views 0.5, cart 2, purchase 5)."""
        cutoff = self._clock() - self.window_seconds
        ranked = []
        with self._lock:
            for product_id, activity in self._products.items():
                activity.prune(cutoff)
                score = len(activity.views) * 0.5 + len(activity.cart_adds) * 2 + len(activity.purchases) * 5
                ranked.append(
                    {
                        "product_id": product_id,
                        "score": score,
                        "views": len(activity.views),
                        "cart_adds": len(activity.cart_adds),
                        "purchases": len(activity.purchases),
                    }
                )
        ranked.sort(key=lambda item: item["score"], reverse=True)
        return ranked[:limit]

    def cleanup(self) -> int:
        """
        Drop events older than the window and forget idle products.

        Returns:
            int: Number of products removed.
        """
        cutoff = self._clock() - self.window_seconds
        removed = 0
        with self._lock:
            for product_id in list(self._products):
                activity = self._products[product_id]
                activity.prune(cutoff)
                if activity.is_empty():
                    del self._products[product_id]
                    removed += 1
        if removed:
            logger.debug(f"Tracking cache cleanup removed {removed} idle product(s)")
        return removed

    def clear(self) -> None:
        with self._lock:
            self._products.clear()
