"""
Tests for the pricing engine module.
"""

from decimal import Decimal

import pytest

from storefront_pricing.pricing.models import DemandSignals, Product, Variant
from storefront_pricing.pricing.pricing_engine import (
    PricingEngine,
    compute_final_price,
    round_half_up,
)
from storefront_pricing.utils.config_loader import AppConfig, PricingConfig


class TestComputeFinalPrice:
    """Tests for the final price formula."""

    def test_platform_markup_only(self) -> None:
        """Test 100 with 10% platform markup is 110."""
        assert compute_final_price(100, 10, 0) == 110.0

    def test_platform_and_dynamic_markup(self) -> None:
        """Test markups are additive percentages of the base price."""
        assert compute_final_price(100, 10, 25) == 135.0

    def test_defaults(self) -> None:
        """Test None markups fall back to 10% platform and 0% dynamic."""
        assert compute_final_price(200, None, None) == 220.0

    def test_manual_override_wins(self) -> None:
        """Test a positive override is returned as-is."""
        assert compute_final_price(100, 10, 50, manual_override_price=42.5) == 42.5

    @pytest.mark.parametrize("override", [0, -5, None, "junk"])
    def test_non_positive_override_is_ignored(self, override) -> None:
        """Test zero, negative or invalid overrides fall through to the formula."""
        assert compute_final_price(100, 10, 0, manual_override_price=override) == 110.0

    @pytest.mark.parametrize("base", [0, -10, None, "abc", float("nan")])
    def test_invalid_base_returns_zero(self, base) -> None:
        """Test a missing or non-positive base price yields 0 without raising."""
        assert compute_final_price(base, 10, 10) == 0.0

    def test_final_never_below_base(self) -> None:
        """Test a negative platform markup cannot push the price below base."""
        assert compute_final_price(100, -30, 0) == 100.0

    @pytest.mark.parametrize("base", [0.5, 1, 9.99, 49, 100, 1234.56])
    @pytest.mark.parametrize("dynamic", [0, 8, 25, 50])
    def test_final_at_least_base(self, base: float, dynamic: int) -> None:
        """Test final >= base for any valid markup combination."""
        assert compute_final_price(base, 10, dynamic, decimals=2) >= base

    def test_rounding_half_up(self) -> None:
        """Test whole-unit rounding rounds .5 up."""
        # 45 * 1.1 = 49.5
        assert compute_final_price(45, 10, 0) == 50.0
        assert compute_final_price(45, 10, 0, decimals=2) == 49.5

    def test_round_half_up_helper(self) -> None:
        """Test the Decimal rounding helper."""
        assert round_half_up(2.675, 2) == Decimal("2.68")
        assert round_half_up(Decimal("0.5")) == Decimal("1")


class TestPricingEngine:
    """Tests for PricingEngine class."""

    @pytest.fixture
    def config(self) -> AppConfig:
        """Create test configuration."""
        return AppConfig()

    @pytest.fixture
    def engine(self, config: AppConfig) -> PricingEngine:
        """Create test pricing engine."""
        return PricingEngine(config)

    def test_engine_initialization(self, engine: PricingEngine) -> None:
        """Test engine picks up pricing config."""
        assert engine.default_platform_markup_pct == 10.0
        assert engine.decimals == 0
        assert engine.max_dynamic_markup_pct == 50

    def test_custom_precision(self) -> None:
        """Test price_decimals controls rounding."""
        engine = PricingEngine(AppConfig(pricing=PricingConfig(price_decimals=2)))
        assert engine.final_price(45, 10, 0) == 49.5

    def test_reprice_scarce_product(self, engine: PricingEngine) -> None:
        """Test base 100, platform 10, stock 3 gives dynamic 25 and final 135."""
        product = Product(id="p1", base_price=100, platform_markup_pct=10, stock=3)

        changed = engine.reprice_item(product, DemandSignals())

        assert changed is True
        assert product.dynamic_markup_pct == 25
        assert product.final_price == 135.0
        assert product.price == 100

    def test_reprice_is_idempotent(self, engine: PricingEngine) -> None:
        """Test a second pass on unchanged data reports no change."""
        product = Product(id="p1", base_price=100, stock=3)
        engine.reprice_item(product, DemandSignals())

        assert engine.reprice_item(product, DemandSignals()) is False
        assert product.final_price == 135.0

    def test_reprice_with_override(self, engine: PricingEngine) -> None:
        """Test the override wins but dynamic markup is still tracked."""
        product = Product(id="p1", base_price=100, stock=3, manual_override_price=99)
        engine.reprice_item(product, DemandSignals())

        assert product.final_price == 99
        assert product.dynamic_markup_pct == 25

    def test_variant_inherits_parent_platform_markup(self, engine: PricingEngine) -> None:
        """Test a variant without its own platform markup uses the product's."""
        parent = Product(id="p1", platform_markup_pct=20)
        variant = Variant(sku="p1-a", base_price=100, stock=100)

        engine.reprice_item(variant, DemandSignals(), parent=parent)

        assert variant.final_price == 120.0

    def test_demand_signals_raise_price(self, engine: PricingEngine) -> None:
        """Test demand adds to the dynamic markup."""
        product = Product(id="p1", base_price=100, stock=500)
        engine.reprice_item(product, DemandSignals(views_24h=120))

        assert product.dynamic_markup_pct == 12
        assert product.final_price == 122.0

    def test_pricing_summary(self, engine: PricingEngine) -> None:
        """Test summary string shows the formula."""
        product = Product(id="p1", base_price=100)
        summary = engine.get_pricing_summary(product, 25)
        assert "135.00" in summary
