"""
Tests for the currency configuration store.
"""

from pathlib import Path

import pytest
import yaml

from storefront_pricing.pricing.models import RoundingStrategy
from storefront_pricing.storage.currency_store import (
    CurrencyNotConfiguredError,
    CurrencyStore,
    default_currencies,
)


class TestCurrencyStore:
    """Tests for CurrencyStore."""

    @pytest.fixture
    def currencies_path(self, tmp_path: Path) -> Path:
        return tmp_path / "config" / "currencies.yaml"

    @pytest.fixture
    def store(self, currencies_path: Path) -> CurrencyStore:
        """Create a store seeded with the default registry."""
        return CurrencyStore(currencies_path)

    def test_seeds_file_on_first_use(self, store: CurrencyStore, currencies_path: Path) -> None:
        """Test the default registry is written when no file exists."""
        codes = [c.code for c in store.list_all()]

        assert codes == ["USD", "EGP", "SDG", "SAR"]
        assert currencies_path.exists()

    def test_default_seed_values(self) -> None:
        """Test seed currencies carry their display settings."""
        seed = {c.code: c for c in default_currencies()}

        assert seed["USD"].rounding_strategy == RoundingStrategy.ENDING_9
        assert seed["SDG"].decimals == 0
        assert seed["SDG"].manual_rate == 600.0
        assert seed["SAR"].is_active is False

    def test_active_non_base_codes(self, store: CurrencyStore) -> None:
        """Test only active non-USD codes need fetching."""
        assert store.active_non_base_codes() == ["EGP", "SDG"]

    def test_get_unknown_raises(self, store: CurrencyStore) -> None:
        """Test get() raises for an unconfigured code."""
        with pytest.raises(CurrencyNotConfiguredError):
            store.get("JPY")

    def test_get_or_default(self, store: CurrencyStore) -> None:
        """Test an unknown code gets synthesized display settings."""
        config = store.get_or_default("jpy")

        assert config.code == "JPY"
        assert config.symbol == "JPY"
        assert config.decimals == 2
        assert config.rounding_strategy == RoundingStrategy.NONE

    def test_set_manual_rate_persists(self, store: CurrencyStore, currencies_path: Path) -> None:
        """Test a manual rate is saved and enables manual rates."""
        store.set_manual_rate("egp", 50.25)

        reloaded = CurrencyStore(currencies_path).get("EGP")
        assert reloaded.allow_manual_rate is True
        assert reloaded.manual_rate == 50.25
        assert reloaded.manual_rate_updated_at is not None

    @pytest.mark.parametrize("rate", [0, -1])
    def test_set_manual_rate_rejects_non_positive(self, store: CurrencyStore, rate: float) -> None:
        """Test non-positive manual rates are rejected."""
        with pytest.raises(ValueError):
            store.set_manual_rate("EGP", rate)

    def test_clear_manual_rate(self, store: CurrencyStore) -> None:
        """Test clearing removes the rate and its timestamp."""
        config = store.clear_manual_rate("SDG")

        assert config.manual_rate is None
        assert config.manual_rate_updated_at is None

    def test_loads_custom_file_and_clamps_adjustment(self, currencies_path: Path) -> None:
        """Test YAML entries are parsed and the market adjustment is clamped."""
        currencies_path.parent.mkdir(parents=True)
        currencies_path.write_text(
            yaml.safe_dump(
                {
                    "currencies": [
                        {
                            "code": "eur",
                            "symbol": "€",
                            "rounding_strategy": "custom",
                            "custom_rounding_rules": [{"max": 100, "nearest": 5}],
                            "market_markup_adjustment_pct": 45,
                            "is_active": True,
                        },
                        {"code": "EURO", "is_active": True},
                    ]
                },
                allow_unicode=True,
            ),
            encoding="utf-8",
        )

        store = CurrencyStore(currencies_path)
        eur = store.get("EUR")

        assert [c.code for c in store.list_all()] == ["EUR"]
        assert eur.rounding_strategy == RoundingStrategy.CUSTOM
        assert eur.custom_rounding_rules[0].max_amount == 100
        assert eur.market_markup_adjustment_pct == 30.0

    def test_non_mapping_file_uses_defaults(self, currencies_path: Path) -> None:
        """Test a file whose top level is not a mapping falls back to the seed registry."""
        currencies_path.parent.mkdir(parents=True)
        currencies_path.write_text("- USD\n- EGP\n", encoding="utf-8")

        store = CurrencyStore(currencies_path)

        assert sorted(c.code for c in store.list_all()) == sorted(c.code for c in default_currencies())

    def test_non_mapping_entries_are_skipped(self, currencies_path: Path) -> None:
        """Test entries that are not mappings are ignored."""
        currencies_path.parent.mkdir(parents=True)
        currencies_path.write_text(
            yaml.safe_dump({"currencies": ["EGP", 7, {"code": "SAR", "is_active": True}]}),
            encoding="utf-8",
        )

        store = CurrencyStore(currencies_path)

        assert [c.code for c in store.list_all()] == ["SAR"]
