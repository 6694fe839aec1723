"""
Tests for the pricing service.
"""

import json
from pathlib import Path
from unittest.mock import patch

import pytest

from storefront_pricing.pricing.pricing_engine import PricingEngine
from storefront_pricing.services.pricing_service import (
    PricingService,
    ProductNotFoundError,
    VariantNotFoundError,
)
from storefront_pricing.services.tracking_cache import ActivityTracker
from storefront_pricing.storage.catalog_store import JsonLinesCatalogStore
from storefront_pricing.utils.config_loader import AppConfig

SIMPLE_PRODUCT = {"id": "mug", "name": "Mug", "base_price": 100, "platform_markup_pct": 10, "stock": 3}

VARIANT_PRODUCT = {
    "id": "tee",
    "name": "T-Shirt",
    "platform_markup_pct": 10,
    "variants": [
        {"sku": "tee-s", "base_price": 50, "stock": 0, "attributes": {"size": "S"}},
        {"sku": "tee-m", "base_price": 70, "stock": 5, "attributes": {"size": "M"}},
    ],
}


class TestPricingService:
    """Tests for PricingService."""

    @pytest.fixture
    def catalog_path(self, tmp_path: Path) -> Path:
        path = tmp_path / "catalog.jsonl"
        with open(path, "w", encoding="utf-8") as f:
            for product in (SIMPLE_PRODUCT, VARIANT_PRODUCT):
                f.write(json.dumps(product) + "\n")
        return path

    @pytest.fixture
    def catalog(self, catalog_path: Path) -> JsonLinesCatalogStore:
        return JsonLinesCatalogStore(catalog_path)

    @pytest.fixture
    def tracker(self) -> ActivityTracker:
        return ActivityTracker()

    @pytest.fixture
    def service(self, catalog: JsonLinesCatalogStore, tracker: ActivityTracker) -> PricingService:
        return PricingService(catalog, engine=PricingEngine(), tracker=tracker)

    def test_pricing_pass_updates_catalog(self, service: PricingService, catalog_path: Path) -> None:
        """Test a pass reprices simple and variant products and persists them."""
        result = service.run_pricing_pass()

        assert result["total"] == 2
        assert result["updated"] == 2
        assert result["errors"] == 0

        catalog = JsonLinesCatalogStore(catalog_path)
        mug = catalog.get("mug")
        assert mug.dynamic_markup_pct == 25
        assert mug.final_price == 135
        assert mug.priced_at is not None

        tee = catalog.get("tee")
        # S: 50 * 1.35 = 67.5 -> 68 (out of stock); M: 70 * 1.35 = 94.5 -> 95
        assert tee.find_variant_by_sku("tee-s").final_price == 68
        assert tee.find_variant_by_sku("tee-m").final_price == 95
        assert tee.final_price == 95
        assert tee.stock == 5

    def test_second_pass_is_idempotent(self, service: PricingService) -> None:
        """Test unchanged data produces no writes on the next pass."""
        service.run_pricing_pass()

        result = service.run_pricing_pass()

        assert result["updated"] == 0

    def test_tracker_signals_take_priority(
        self, service: PricingService, tracker: ActivityTracker, catalog: JsonLinesCatalogStore
    ) -> None:
        """Test live activity overrides stored tracking fields."""
        for _ in range(60):
            tracker.record_view("mug")

        service.run_pricing_pass()

        mug = catalog.get("mug")
        assert mug.tracking.views_24h == 60
        # scarcity 25 + demand 6
        assert mug.dynamic_markup_pct == 31
        assert mug.final_price == 141

    def test_inactive_products_skipped(self, catalog_path: Path) -> None:
        """Test the pass only touches active products."""
        with open(catalog_path, "a", encoding="utf-8") as f:
            f.write(json.dumps({"id": "old", "base_price": 10, "is_active": False}) + "\n")
        service = PricingService(JsonLinesCatalogStore(catalog_path))

        result = service.run_pricing_pass()

        assert result["total"] == 2
        assert JsonLinesCatalogStore(catalog_path).get("old").final_price == 0

    def test_failure_is_isolated(self, service: PricingService, catalog_path: Path) -> None:
        """Test one failing product is counted and the rest still persist."""
        real_reprice = service.reprice_product

        def flaky(product):
            if product.id == "tee":
                raise RuntimeError("corrupt variant data")
            return real_reprice(product)

        with patch.object(service, "reprice_product", side_effect=flaky):
            result = service.run_pricing_pass()

        assert result["errors"] == 1
        assert result["updated"] == 1
        assert JsonLinesCatalogStore(catalog_path).get("mug").final_price == 135

    def test_pass_flushes_in_batches(self, tmp_path: Path) -> None:
        """Test changed products are written out every batch instead of all at the end."""
        path = tmp_path / "big.jsonl"
        with open(path, "w", encoding="utf-8") as f:
            for i in range(12):
                f.write(json.dumps({"id": f"p{i}", "base_price": 10 + i, "stock": 3}) + "\n")
        catalog = JsonLinesCatalogStore(path)
        service = PricingService(catalog, flush_batch_size=5)

        real_save = catalog.save
        real_flush = catalog.flush
        pending_sizes = []
        flushed = []

        def recording_save(product):
            real_save(product)
            pending_sizes.append(catalog.pending_count)

        def recording_flush():
            count = real_flush()
            flushed.append(count)
            return count

        with patch.object(catalog, "save", side_effect=recording_save), patch.object(
            catalog, "flush", side_effect=recording_flush
        ):
            result = service.run_pricing_pass()

        assert result["updated"] == 12
        assert max(pending_sizes) <= 5
        assert flushed == [5, 5, 2]
        assert all(p.final_price > 0 for p in JsonLinesCatalogStore(path).iter_all())

    def test_batch_size_from_config(self, catalog: JsonLinesCatalogStore) -> None:
        """Test the flush batch size defaults to the pricing config."""
        config = AppConfig()
        config.pricing.flush_batch_size = 7

        service = PricingService(catalog, engine=PricingEngine(config))

        assert service.flush_batch_size == 7

    def test_update_variant_reaggregates(self, service: PricingService) -> None:
        """Test selling out the only in-stock variant falls back to the cheapest overall."""
        service.run_pricing_pass()

        product = service.update_variant("tee", {"Size": " m "}, stock=0)

        assert product.stock == 0
        assert product.final_price == 68

    def test_update_variant_override(self, service: PricingService) -> None:
        """Test a manual override on a variant flows into the product price."""
        product = service.update_variant("tee", {"size": "M"}, manual_override_price=60)

        assert product.find_variant_by_sku("tee-m").final_price == 60
        assert product.final_price == 60

    def test_update_variant_errors(self, service: PricingService) -> None:
        """Test unknown product, variant or field raise."""
        with pytest.raises(ProductNotFoundError):
            service.update_variant("nope", {"size": "M"}, stock=1)
        with pytest.raises(VariantNotFoundError):
            service.update_variant("tee", {"size": "XXL"}, stock=1)
        with pytest.raises(ValueError):
            service.update_variant("tee", {"size": "M"}, final_price=1)

    def test_on_variant_changed(self, service: PricingService) -> None:
        """Test repricing a single product by ID."""
        product = service.on_variant_changed("tee")
        assert product.final_price == 95

        with pytest.raises(ProductNotFoundError):
            service.on_variant_changed("missing")
