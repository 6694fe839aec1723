"""
Exchange rate storage module.

Stores dated exchange rate snapshots in a JSON file and resolves the
current rate for a currency, including administrator manual rates.
"""

import json
import logging
import threading
from datetime import date as date_type
from pathlib import Path
from typing import Iterable

from storefront_pricing.pricing.models import (
    BASE_CURRENCY,
    CurrencyConfig,
    ExchangeRateSnapshot,
    RateInfo,
)

logger = logging.getLogger(__name__)

DEFAULT_RATES_PATH = "data/cache/exchange_rates.json"


class RateStore:
    """
    Manages storage and retrieval of exchange rate snapshots.

    Snapshots are keyed by (base, date); writing a snapshot for an existing
    key replaces it. The whole file is rewritten on every upsert.
    """

    def __init__(self, rates_path: str | Path | None = None) -> None:
        """
        Initialize the rate store.

        Args:
            rates_path: Path to the JSON file. Defaults to data/cache/exchange_rates.json
        """
        self.rates_path = Path(rates_path or DEFAULT_RATES_PATH)
        self._lock = threading.Lock()
        self._snapshots: dict[tuple[str, str], ExchangeRateSnapshot] = {}
        self._load()

    def _load(self) -> None:
        """Read snapshots from disk into the in-memory index."""
        if not self.rates_path.exists():
            return

        try:
            with open(self.rates_path, encoding="utf-8") as f:
                raw = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.error(f"Failed to read rates file {self.rates_path}: {e}")
            return

        if not isinstance(raw, dict):
            logger.error(f"Ignoring rates file {self.rates_path}: expected a JSON object")
            return

        for entry in raw.get("snapshots") or []:
            if not isinstance(entry, dict):
                logger.warning(f"Invalid snapshot entry skipped: {entry!r}")
                continue
            try:
                snapshot = ExchangeRateSnapshot.from_dict(entry)
            except (KeyError, ValueError) as e:
                logger.warning(f"Invalid snapshot entry skipped: {e}")
                continue
            self._snapshots[snapshot.key] = snapshot

        logger.debug(f"Loaded {len(self._snapshots)} rate snapshots from {self.rates_path}")

    def _write_all(self, snapshots: Iterable[ExchangeRateSnapshot]) -> None:
        self.rates_path.parent.mkdir(parents=True, exist_ok=True)
        ordered = sorted(snapshots, key=lambda s: (s.date, s.fetched_at))
        payload = {"snapshots": [s.to_dict() for s in ordered]}
        tmp_path = self.rates_path.with_suffix(".tmp")
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2)
            tmp_path.replace(self.rates_path)
        finally:
            if tmp_path.exists():
                tmp_path.unlink()

    def upsert(self, snapshot: ExchangeRateSnapshot) -> ExchangeRateSnapshot:
        """
        Insert or replace the snapshot for (base, date).

        Args:
            snapshot: Snapshot to persist.

        Returns:
            The stored snapshot.

        Raises:
            OSError: If the file cannot be written; the in-memory index is
                left unchanged.
        """
        with self._lock:
            replaced = snapshot.key in self._snapshots
            updated = dict(self._snapshots)
            updated[snapshot.key] = snapshot
            self._write_all(updated.values())
            self._snapshots = updated

        action = "Updated" if replaced else "Stored"
        logger.info(
            f"{action} {snapshot.base} rate snapshot for {snapshot.date} "
            f"({len(snapshot.rates)} rates, status={snapshot.fetch_status.value})"
        )
        return snapshot

    def get_latest(self) -> ExchangeRateSnapshot | None:
        """Most recent snapshot by date, tie-broken by fetch time."""
        with self._lock:
            if not self._snapshots:
                return None
            return max(self._snapshots.values(), key=lambda s: (s.date, s.fetched_at))

    def get_history(self, limit: int = 30) -> list[ExchangeRateSnapshot]:
        """
        Get stored snapshots, newest first.

        Args:
            limit: Maximum number of snapshots to return.
        """
        with self._lock:
            ordered = sorted(
                self._snapshots.values(), key=lambda s: (s.date, s.fetched_at), reverse=True
            )
        return ordered[: max(0, limit)]

    def get_by_date(self, date: str, base: str = BASE_CURRENCY) -> ExchangeRateSnapshot | None:
        with self._lock:
            return self._snapshots.get((base.upper(), date))

    def resolve(self, code: str, currency: CurrencyConfig | None = None) -> RateInfo:
        """
        Resolve the current rate for a currency.

        Order of precedence:
        1. Base currency -> rate 1, provider "system"
        2. Manual rate, when the currency allows one and it is > 0
        3. Latest snapshot rate
        4. Unavailable

        Args:
            code: Currency code.
            currency: Currency config carrying manual rate settings.

        Returns:
            RateInfo: Resolved rate, or rate_unavailable=True.
        """
        code = (code or BASE_CURRENCY).strip().upper()

        if code == BASE_CURRENCY:
            return RateInfo(rate=1.0, date=date_type.today().isoformat(), provider="system")

        if currency is not None and currency.allow_manual_rate and (currency.manual_rate or 0) > 0:
            updated_at = currency.manual_rate_updated_at
            return RateInfo(
                rate=float(currency.manual_rate),
                date=updated_at.date().isoformat() if updated_at else None,
                provider="manual",
            )

        latest = self.get_latest()
        if latest is not None:
            rate = latest.get_rate(code)
            if rate is not None:
                return RateInfo(rate=rate, date=latest.date, provider=latest.provider)

        logger.debug(f"No exchange rate available for {code}")
        return RateInfo(rate=None, date=None, provider="none", rate_unavailable=True)

    def resolve_many(
        self,
        codes: Iterable[str],
        currencies: dict[str, CurrencyConfig] | None = None,
    ) -> dict[str, RateInfo]:
        """Resolve several currencies at once against the same latest snapshot."""
        currencies = currencies or {}
        result: dict[str, RateInfo] = {}
        for code in codes:
            code = code.strip().upper()
            result[code] = self.resolve(code, currencies.get(code))
        return result

    def count(self) -> int:
        with self._lock:
            return len(self._snapshots)
