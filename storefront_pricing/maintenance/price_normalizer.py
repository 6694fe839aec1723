"""
One-off price normalization.

Repairs catalog items whose prices were stored in minor units (cents
instead of dollars). An item counts as inflated when its final price is
above a threshold; its base, legacy and override prices are divided by 100
and its final price is recomputed.
"""

import logging
from dataclasses import dataclass, field

from storefront_pricing.pricing.models import Product, Variant
from storefront_pricing.pricing.pricing_engine import PricingEngine
from storefront_pricing.storage.catalog_store import CatalogRepository

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 1000.0
MINOR_UNIT_DIVISOR = 100


@dataclass
class PriceChange:
    """Before/after record of one normalized item."""

    product_id: str
    sku: str | None
    final_price_before: float
    final_price_after: float
    base_price_after: float


@dataclass
class NormalizationReport:
    """Summary of a normalization run."""

    scanned: int = 0
    updated: int = 0
    dry_run: bool = False
    changes: list[PriceChange] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "scanned": self.scanned,
            "updated": self.updated,
            "dry_run": self.dry_run,
            "changes": [vars(c) for c in self.changes],
        }


class PriceNormalizer:
    """
    Finds and repairs inflated catalog prices.

    Attributes:
        catalog: Catalog repository to scan.
        engine: Pricing engine used to recompute final prices.
        threshold: Final price above which an item is considered inflated.
    """

    def __init__(
        self,
        catalog: CatalogRepository,
        engine: PricingEngine | None = None,
        threshold: float = DEFAULT_THRESHOLD,
    ) -> None:
        self.catalog = catalog
        self.engine = engine or PricingEngine()
        self.threshold = threshold

    def _normalize_item(self, item: Product | Variant, parent: Product | None = None) -> None:
        item.base_price = (item.base_price or 0) / MINOR_UNIT_DIVISOR
        if item.price:
            item.price = item.price / MINOR_UNIT_DIVISOR
        if item.manual_override_price and item.manual_override_price > 0:
            item.manual_override_price = item.manual_override_price / MINOR_UNIT_DIVISOR

        platform = item.platform_markup_pct
        if platform is None and parent is not None:
            platform = parent.platform_markup_pct
        item.final_price = self.engine.final_price(
            item.base_price,
            platform,
            item.dynamic_markup_pct,
            item.manual_override_price,
        )

    def normalize_product(self, product: Product) -> list[PriceChange]:
        """
        Normalize one product in place.

        Returns:
            List of changes made (empty if nothing was inflated).
        """
        changes: list[PriceChange] = []

        if product.final_price > self.threshold and not product.has_variants:
            before = product.final_price
            self._normalize_item(product)
            changes.append(
                PriceChange(product.id, None, before, product.final_price, product.base_price)
            )

        if product.has_variants:
            for variant in product.variants:
                if variant.final_price > self.threshold:
                    before = variant.final_price
                    self._normalize_item(variant, parent=product)
                    changes.append(
                        PriceChange(
                            product.id, variant.sku, before, variant.final_price, variant.base_price
                        )
                    )

            # Root shows the cheapest active variant
            active_prices = [
                v.final_price for v in product.variants if v.is_active and v.final_price > 0
            ]
            if changes and active_prices:
                product.final_price = min(active_prices)

        return changes

    def run(self, dry_run: bool = False) -> NormalizationReport:
        """
        Scan the whole catalog and normalize inflated items.

        Args:
            dry_run: Report what would change without saving.

        Returns:
            NormalizationReport with per-item changes.
        """
        report = NormalizationReport(dry_run=dry_run)

        for product in self.catalog.iter_all():
            report.scanned += 1
            changes = self.normalize_product(product)
            if not changes:
                continue

            report.updated += 1
            report.changes.extend(changes)
            for change in changes:
                label = f"{change.product_id}/{change.sku}" if change.sku else change.product_id
                logger.info(
                    f"{'Would normalize' if dry_run else 'Normalized'} {label}: "
                    f"final {change.final_price_before} -> {change.final_price_after}"
                )
            if not dry_run:
                self.catalog.save(product)

        if not dry_run:
            self.catalog.flush()

        logger.info(
            f"Normalization complete: scanned={report.scanned}, updated={report.updated}, "
            f"dry_run={dry_run}"
        )
        return report
