"""
Tests for currency conversion, psychological pricing and formatting.
"""

import pytest

from storefront_pricing.pricing.currency_converter import (
    apply_psychological_pricing,
    convert,
    convert_product_prices,
    format_price,
)
from storefront_pricing.pricing.models import (
    CurrencyConfig,
    CustomRoundingRule,
    RateInfo,
    RoundingStrategy,
)


@pytest.fixture
def usd() -> CurrencyConfig:
    return CurrencyConfig(
        code="USD", symbol="$", decimals=2, rounding_strategy=RoundingStrategy.ENDING_9
    )


@pytest.fixture
def egp() -> CurrencyConfig:
    return CurrencyConfig(
        code="EGP",
        symbol="EGP",
        symbol_position="after",
        decimals=2,
        rounding_strategy=RoundingStrategy.NEAREST_10,
    )


@pytest.fixture
def sdg() -> CurrencyConfig:
    return CurrencyConfig(
        code="SDG",
        symbol="SDG",
        symbol_position="after",
        decimals=0,
        rounding_strategy=RoundingStrategy.NEAREST_10,
    )


class TestPsychologicalPricing:
    """Tests for apply_psychological_pricing."""

    @pytest.mark.parametrize(
        "amount,expected",
        [
            (7.23, 6.99),
            (0.40, 0.99),
            (45.67, 49.99),
            (42.00, 39.99),
            (456, 499),
            (420, 399),
            (1234, 1199),
            (1260, 1299),
        ],
    )
    def test_ending_9(self, amount: float, expected: float) -> None:
        """Test ENDING_9 snaps to the expected 9-ending price."""
        config = CurrencyConfig(code="USD", rounding_strategy=RoundingStrategy.ENDING_9)
        assert apply_psychological_pricing(amount, config) == pytest.approx(expected)

    @pytest.mark.parametrize(
        "strategy,amount,expected",
        [
            (RoundingStrategy.NEAREST_1, 12.5, 13),
            (RoundingStrategy.NEAREST_5, 12.4, 10),
            (RoundingStrategy.NEAREST_5, 12.5, 15),
            (RoundingStrategy.NEAREST_10, 485.2, 490),
            (RoundingStrategy.NONE, 12.345, 12.35),
        ],
    )
    def test_nearest_and_none(self, strategy: RoundingStrategy, amount: float, expected: float) -> None:
        """Test nearest-N rounding and plain decimal rounding."""
        config = CurrencyConfig(code="EUR", decimals=2, rounding_strategy=strategy)
        assert apply_psychological_pricing(amount, config) == pytest.approx(expected)

    def test_custom_rules(self) -> None:
        """Test the first rule whose max_amount is above the amount applies."""
        config = CurrencyConfig(
            code="EGP",
            rounding_strategy=RoundingStrategy.CUSTOM,
            custom_rounding_rules=[
                CustomRoundingRule(max_amount=None, round_to=50, offset=-1),
                CustomRoundingRule(max_amount=100, nearest=5),
            ],
        )
        assert apply_psychological_pricing(42, config) == 40
        assert apply_psychological_pricing(437, config) == 399

    def test_custom_without_rules_rounds_to_integer(self) -> None:
        """Test CUSTOM with no rules falls back to whole-unit rounding."""
        config = CurrencyConfig(code="EGP", rounding_strategy=RoundingStrategy.CUSTOM)
        assert apply_psychological_pricing(12.5, config) == 13

    @pytest.mark.parametrize("amount", [0, -5, None, "abc"])
    def test_invalid_amount_returns_zero(self, amount, usd: CurrencyConfig) -> None:
        """Test non-positive or invalid amounts yield 0."""
        assert apply_psychological_pricing(amount, usd) == 0.0


class TestFormatPrice:
    """Tests for format_price."""

    def test_symbol_before(self, usd: CurrencyConfig) -> None:
        """Test symbol prefix with two decimals."""
        assert format_price(1234, usd) == "$1,234.00"

    def test_symbol_after(self, sdg: CurrencyConfig) -> None:
        """Test symbol suffix with no decimals."""
        assert format_price(1234, sdg) == "1,234 SDG"

    def test_none_is_empty(self, usd: CurrencyConfig) -> None:
        """Test a missing amount formats as an empty string."""
        assert format_price(None, usd) == ""


class TestConvert:
    """Tests for convert."""

    def test_convert_with_rate(self, egp: CurrencyConfig) -> None:
        """Test conversion multiplies by the rate and rounds."""
        result = convert(10, "EGP", egp, RateInfo(rate=48.52, date="2026-10-16", provider="frankfurter"))

        assert result.price_converted == 490
        assert result.price_display == "490.00 EGP"
        assert result.rate == 48.52
        assert result.rate_date == "2026-10-16"
        assert result.rate_unavailable is False

    def test_market_adjustment_reapplies_rounding(self, egp: CurrencyConfig) -> None:
        """Test the adjustment is applied after rounding and rounded again."""
        egp.market_markup_adjustment_pct = 10
        result = convert(10, "EGP", egp, RateInfo(rate=48.52, date="2026-10-16"))

        # 490 * 1.1 = 539 -> 540
        assert result.price_converted == 540
        assert result.market_markup_adjustment_pct == 10

    def test_base_currency_uses_rate_one(self, usd: CurrencyConfig) -> None:
        """Test USD is never converted but still rounded."""
        result = convert(45.67, "usd", usd, RateInfo(rate=None, date=None, rate_unavailable=True))

        assert result.currency_code == "USD"
        assert result.rate == 1.0
        assert result.price_converted == pytest.approx(49.99)
        assert result.rate_unavailable is False

    def test_unavailable_rate_passes_base_through(self, egp: CurrencyConfig) -> None:
        """Test a missing rate returns the base amount unrounded and flagged."""
        result = convert(
            12.34, "EGP", egp, RateInfo(rate=None, date=None, provider="none", rate_unavailable=True)
        )

        assert result.rate_unavailable is True
        assert result.price_converted == 12.34
        assert result.rate == 1.0

    def test_unknown_currency_gets_default_config(self) -> None:
        """Test conversion without a config synthesizes one."""
        result = convert(10, "EUR", None, RateInfo(rate=0.9213, date="2026-10-16"))

        assert result.symbol == "EUR"
        assert result.rounding_strategy == "NONE"
        assert result.price_converted == pytest.approx(9.21)

    @pytest.mark.parametrize("amount", [None, "", "abc", float("nan"), float("inf")])
    def test_invalid_amount_converts_as_zero(self, amount, egp: CurrencyConfig) -> None:
        """Test a missing or unparseable amount converts as 0 instead of raising."""
        result = convert(amount, "EGP", egp, RateInfo(rate=50.0, date="2026-10-16"))

        assert result.price_base == 0.0
        assert result.price_converted == 0.0
        assert result.price_display == "0.00 EGP"
        assert result.rate_unavailable is False


class TestConvertProductPrices:
    """Tests for convert_product_prices."""

    def test_converts_all_fields(self, sdg: CurrencyConfig) -> None:
        """Test root and variant price fields are converted and inputs untouched."""
        product = {
            "id": "p1",
            "final_price": 10,
            "base_price": 8,
            "manual_override_price": 0,
            "price": 8,
            "variants": [{"sku": "A", "final_price": 10, "base_price": 8, "price": 8}],
        }
        rate = RateInfo(rate=600, date="2026-10-16", provider="manual")

        result = convert_product_prices(product, "SDG", sdg, rate)

        assert result["final_price"] == 6000
        assert result["price_display"] == "6,000 SDG"
        assert result["base_price"] == 4800
        assert result["price"] == 4800
        assert result["manual_override_price"] == 0
        assert "manual_override_display" not in result
        assert result["variants"][0]["final_price"] == 6000
        assert result["variants"][0]["price_display"] == "6,000 SDG"
        assert result["currency_code"] == "SDG"
        assert product["final_price"] == 10

    def test_override_gets_display(self, sdg: CurrencyConfig) -> None:
        """Test a positive override is converted with its own display string."""
        product = {"id": "p1", "final_price": 5, "manual_override_price": 5}
        result = convert_product_prices(product, "SDG", sdg, RateInfo(rate=600, date="2026-10-16"))

        assert result["manual_override_display"] == "3,000 SDG"

    def test_non_numeric_fields_do_not_raise(self, sdg: CurrencyConfig) -> None:
        """Test non-numeric prices and overrides are tolerated."""
        product = {
            "id": "p1",
            "final_price": "abc",
            "manual_override_price": "n/a",
            "variants": [{"sku": "A", "final_price": 10, "manual_override_price": "soon"}],
        }

        result = convert_product_prices(product, "SDG", sdg, RateInfo(rate=600, date="2026-10-16"))

        assert result["final_price"] == 0.0
        assert result["manual_override_price"] == "n/a"
        assert "manual_override_display" not in result
        assert result["variants"][0]["final_price"] == 6000
        assert result["variants"][0]["manual_override_price"] == "soon"
