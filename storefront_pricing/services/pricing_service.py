"""
Pricing Service for catalog repricing.

Runs the dynamic pricing pass over the catalog:
- Demand signals from the activity tracker (or stored tracking fields)
- Dynamic markup and final price per simple product or variant
- Variant roll-up to product price and stock
- Persists only products whose price fields changed
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping

from storefront_pricing.pricing.models import DemandSignals, Product, VariantAttributes
from storefront_pricing.pricing.pricing_engine import PricingEngine
from storefront_pricing.pricing.variant_aggregator import apply_aggregate
from storefront_pricing.services.tracking_cache import ActivityTracker
from storefront_pricing.storage.catalog_store import CatalogRepository

logger = logging.getLogger(__name__)

# Variant fields an update may change
VARIANT_MUTABLE_FIELDS = (
    "base_price",
    "platform_markup_pct",
    "manual_override_price",
    "stock",
    "is_active",
)


class ProductNotFoundError(LookupError):
    """Raised when a product ID is not in the catalog."""

    pass


class VariantNotFoundError(LookupError):
    """Raised when no variant matches the given attributes."""

    pass


@dataclass
class PricingPassResult:
    """Outcome counts of one pricing pass."""

    total: int = 0
    updated: int = 0
    errors: int = 0
    duration_ms: int = 0
    failed_ids: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "updated": self.updated,
            "errors": self.errors,
            "duration_ms": self.duration_ms,
        }


class PricingService:
    """
    Service that keeps catalog final prices current.

    Attributes:
        catalog: Catalog repository to read from and write to.
        engine: Pricing engine bound to the app's pricing config.
        tracker: Optional activity tracker supplying live demand signals.
        flush_batch_size: Changed products staged before the pass flushes them.
    """

    def __init__(
        self,
        catalog: CatalogRepository,
        engine: PricingEngine | None = None,
        tracker: ActivityTracker | None = None,
        flush_batch_size: int | None = None,
    ) -> None:
        self.catalog = catalog
        self.engine = engine or PricingEngine()
        self.tracker = tracker
        if flush_batch_size is None:
            flush_batch_size = self.engine.config.pricing.flush_batch_size
        self.flush_batch_size = max(1, int(flush_batch_size))

    def _signals_for(self, product: Product) -> DemandSignals:
        if self.tracker is not None and self.tracker.has_activity(product.id):
            return self.tracker.signals(product.id)
        return product.tracking

    def reprice_product(self, product: Product) -> bool:
        """
        Reprice one product in place.

        Simple products are repriced directly. For products with variants,
        each variant is repriced from its own stock and the product's demand
        signals, then the product takes the aggregated price and stock.

        Returns:
            bool: True if any stored field changed.
        """
        signals = self._signals_for(product)
        changed = False

        if signals != product.tracking:
            product.tracking = signals
            changed = True

        if product.has_variants:
            for variant in product.variants:
                if self.engine.reprice_item(variant, signals, parent=product):
                    changed = True
            if apply_aggregate(product):
                changed = True
        else:
            if self.engine.reprice_item(product, signals):
                changed = True

        if changed:
            product.priced_at = datetime.now(timezone.utc)
        return changed

    def run_pricing_pass(self) -> dict[str, Any]:
        """
        Reprice every active product and persist the changed ones.

        Changed products are flushed every flush_batch_size saves so memory
        stays bounded on large catalogs. A failure on one product is logged
        and counted; the pass continues.

        Returns:
            Dict with total, updated, errors and duration_ms.
        """
        start = time.monotonic()
        result = PricingPassResult()
        pending = 0

        logger.info("Starting pricing pass")
        for product in self.catalog.iter_active():
            result.total += 1
            try:
                if self.reprice_product(product):
                    self.catalog.save(product)
                    result.updated += 1
                    pending += 1
            except Exception as e:
                result.errors += 1
                result.failed_ids.append(product.id)
                logger.error(f"Failed to reprice product {product.id}: {type(e).__name__}: {e}")

            if pending >= self.flush_batch_size:
                self.catalog.flush()
                pending = 0

        self.catalog.flush()
        result.duration_ms = int((time.monotonic() - start) * 1000)

        logger.info(
            f"Pricing pass complete: {result.total} products, {result.updated} updated, "
            f"{result.errors} errors in {result.duration_ms}ms"
        )
        return result.to_dict()

    def on_variant_changed(self, product_id: str) -> Product:
        """
        Reprice a product after one of its variants changed.

        Args:
            product_id: ID of the owning product.

        Returns:
            The repriced product.

        Raises:
            ProductNotFoundError: If the product doesn't exist.
        """
        product = self.catalog.get(product_id)
        if product is None:
            raise ProductNotFoundError(f"Product not found: {product_id}")

        if self.reprice_product(product):
            self.catalog.save(product)
            self.catalog.flush()
            logger.info(f"Repriced product {product_id}: final_price={product.final_price}")
        return product

    def update_variant(
        self,
        product_id: str,
        attributes: VariantAttributes | Mapping[str, Any],
        **changes: Any,
    ) -> Product:
        """
        Apply changes to one variant and reprice its product.

        Args:
            product_id: ID of the owning product.
            attributes: Attributes identifying the variant.
            **changes: Field updates (base_price, stock, is_active, ...).

        Returns:
            The repriced product.

        Raises:
            ProductNotFoundError: If the product doesn't exist.
            VariantNotFoundError: If no variant matches the attributes.
            ValueError: If a change names an unknown field.
        """
        unknown = set(changes) - set(VARIANT_MUTABLE_FIELDS)
        if unknown:
            raise ValueError(f"Unknown variant field(s): {sorted(unknown)}")

        product = self.catalog.get(product_id)
        if product is None:
            raise ProductNotFoundError(f"Product not found: {product_id}")

        variant = product.find_variant(attributes)
        if variant is None:
            raise VariantNotFoundError(f"No variant of {product_id} matches {attributes}")

        for name, value in changes.items():
            if name == "stock":
                value = max(0, int(value))
            setattr(variant, name, value)

        self.reprice_product(product)
        self.catalog.save(product)
        self.catalog.flush()
        logger.info(
            f"Variant {variant.sku or variant.attributes} of {product_id} updated: "
            f"product final_price={product.final_price}, stock={product.stock}"
        )
        return product
