"""
Tests for the command line interface.
"""

import json
import logging
from pathlib import Path
from typing import Iterator

import pandas as pd
import pytest
import responses
import yaml

from fixtures.fx_mocks import add_latest_error_mock, add_latest_mock
from storefront_pricing.main import main, parse_args
from storefront_pricing.storage.catalog_store import JsonLinesCatalogStore
from storefront_pricing.storage.rate_store import RateStore


@pytest.fixture(autouse=True)
def restore_root_logger() -> Iterator[None]:
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def workdir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Temp working directory with a config file and a small catalog."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("FX_PROVIDER_URL", raising=False)

    (tmp_path / "catalog.jsonl").write_text(
        json.dumps({"id": "mug", "name": "Mug", "base_price": 100, "stock": 3}) + "\n"
        + json.dumps({"id": "lamp", "name": "Lamp", "base_price": 5000, "final_price": 5500}) + "\n",
        encoding="utf-8",
    )
    config = {
        "paths": {
            "cache_dir": "cache",
            "output_dir": "output",
            "catalog_file": "catalog.jsonl",
            "rates_file": "cache/rates.json",
            "job_runs_file": "cache/job_runs.csv",
            "currencies_file": "currencies.yaml",
        },
        "fx": {"max_retries": 1},
        "logging": {"level": "WARNING", "log_file": None},
    }
    (tmp_path / "config.yaml").write_text(yaml.safe_dump(config), encoding="utf-8")
    return tmp_path


class TestParseArgs:
    """Tests for argument parsing."""

    def test_defaults(self) -> None:
        """Test the default config path and subcommand."""
        args = parse_args(["reprice"])

        assert args.command == "reprice"
        assert args.config == Path("config/config.yaml")
        assert args.verbose is False

    def test_audit_options(self) -> None:
        """Test repeatable currencies and an explicit output."""
        args = parse_args(["audit-prices", "-o", "out.csv", "--currency", "EGP", "--currency", "SDG"])

        assert args.output == Path("out.csv")
        assert args.currency == ["EGP", "SDG"]
        assert args.threshold == 1000.0

    def test_command_required(self) -> None:
        """Test a missing subcommand is an error."""
        with pytest.raises(SystemExit):
            parse_args([])


class TestMain:
    """Tests for main() against a temp workspace."""

    def test_reprice(self, workdir: Path, capsys: pytest.CaptureFixture) -> None:
        """Test the reprice command updates the catalog."""
        exit_code = main(["-c", "config.yaml", "reprice"])

        assert exit_code == 0
        assert "Products updated: 2" in capsys.readouterr().out
        assert JsonLinesCatalogStore(workdir / "catalog.jsonl").get("mug").final_price == 135

    def test_normalize_dry_run(self, workdir: Path, capsys: pytest.CaptureFixture) -> None:
        """Test a dry run lists inflated products without saving."""
        exit_code = main(["-c", "config.yaml", "normalize-prices", "--dry-run"])

        out = capsys.readouterr().out
        assert exit_code == 0
        assert "lamp: 5500.0 -> 55.0" in out
        assert "[DRY RUN]" in out
        assert JsonLinesCatalogStore(workdir / "catalog.jsonl").get("lamp").final_price == 5500

    def test_audit_csv(self, workdir: Path) -> None:
        """Test the audit command writes the requested report."""
        exit_code = main(["-c", "config.yaml", "audit-prices", "-o", "output/audit.csv"])

        assert exit_code == 0
        df = pd.read_csv(workdir / "output" / "audit.csv")
        assert list(df["product_id"]) == ["mug", "lamp"]

    def test_audit_bad_format(self, workdir: Path) -> None:
        """Test an unsupported report format fails cleanly."""
        assert main(["-c", "config.yaml", "audit-prices", "-o", "audit.txt"]) == 1

    @responses.activate
    def test_refresh_fx(self, workdir: Path) -> None:
        """Test a successful refresh stores rates."""
        add_latest_mock(["EGP"])

        assert main(["-c", "config.yaml", "refresh-fx"]) == 0
        assert RateStore(workdir / "cache" / "rates.json").get_latest().rates == {"EGP": 48.52}

    @responses.activate
    def test_refresh_fx_failure(self, workdir: Path, capsys: pytest.CaptureFixture) -> None:
        """Test a failed refresh exits non-zero."""
        add_latest_error_mock(500, "Internal Server Error")

        assert main(["-c", "config.yaml", "refresh-fx"]) == 1
        assert "previous rates kept" in capsys.readouterr().out
