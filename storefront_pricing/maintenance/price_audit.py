"""
Catalog price audit report.

Builds a pandas report comparing stored final prices with freshly
recomputed ones, buckets prices by magnitude, flags inflated items and
adds converted display prices for selected currencies.
"""

import logging
from pathlib import Path
from typing import Iterable

import pandas as pd

from storefront_pricing.pricing.pricing_engine import PricingEngine
from storefront_pricing.services.fx_service import FXService
from storefront_pricing.storage.catalog_store import CatalogRepository

logger = logging.getLogger(__name__)

INFLATED_THRESHOLD = 1000.0

# (label, lower bound inclusive, upper bound exclusive)
MAGNITUDE_BUCKETS = (
    ("<100", 0.0, 100.0),
    ("100-1000", 100.0, 1000.0),
    ("1000-10000", 1000.0, 10000.0),
    (">10000", 10000.0, float("inf")),
)


def magnitude_bucket(price: float) -> str:
    price = price or 0.0
    for label, low, high in MAGNITUDE_BUCKETS:
        if low <= price < high:
            return label
    return MAGNITUDE_BUCKETS[0][0]


class PriceAuditor:
    """
    Produces price audit DataFrames for the catalog.

    Attributes:
        catalog: Catalog repository to read.
        engine: Pricing engine used to recompute final prices.
        fx_service: Optional FX service for converted display prices.
    """

    def __init__(
        self,
        catalog: CatalogRepository,
        engine: PricingEngine | None = None,
        fx_service: FXService | None = None,
        inflated_threshold: float = INFLATED_THRESHOLD,
    ) -> None:
        self.catalog = catalog
        self.engine = engine or PricingEngine()
        self.fx_service = fx_service
        self.inflated_threshold = inflated_threshold

    def build_report(self, currencies: Iterable[str] = ()) -> pd.DataFrame:
        """
        One row per simple product or variant.

        Args:
            currencies: Currency codes to add display price columns for.

        Returns:
            pd.DataFrame with stored vs recomputed prices and flags.
        """
        currencies = [c.strip().upper() for c in currencies if c and c.strip()]
        rows = []

        for product in self.catalog.iter_all():
            if product.has_variants:
                items = [(v, v.sku) for v in product.variants]
            else:
                items = [(product, None)]
            for item, sku in items:
                platform = item.platform_markup_pct
                if platform is None:
                    platform = product.platform_markup_pct
                recomputed = self.engine.final_price(
                    item.base_price, platform, item.dynamic_markup_pct, item.manual_override_price
                )
                row = {
                    "product_id": product.id,
                    "name": product.name,
                    "sku": sku or "",
                    "is_active": product.is_active and item.is_active,
                    "stock": item.stock,
                    "base_price": item.base_price,
                    "platform_markup_pct": platform,
                    "dynamic_markup_pct": item.dynamic_markup_pct,
                    "manual_override_price": item.manual_override_price,
                    "stored_final_price": item.final_price,
                    "recomputed_final_price": recomputed,
                }
                for code in currencies:
                    if self.fx_service is not None:
                        converted = self.fx_service.convert_price(item.final_price, code)
                        row[f"display_{code}"] = converted.price_display
                        if converted.rate_unavailable:
                            row[f"display_{code}"] += " (no rate)"
                rows.append(row)

        df = pd.DataFrame(rows)
        if df.empty:
            return df

        df["difference"] = (df["recomputed_final_price"] - df["stored_final_price"]).round(2)
        df["is_stale"] = df["difference"].abs() > 0
        df["magnitude"] = df["stored_final_price"].apply(magnitude_bucket)
        df["is_inflated"] = df["stored_final_price"] > self.inflated_threshold
        return df

    def summarize(self, df: pd.DataFrame) -> pd.DataFrame:
        """Counts per magnitude bucket plus stale and inflated totals."""
        labels = [label for label, _, _ in MAGNITUDE_BUCKETS]
        if df.empty:
            counts = {label: 0 for label in labels}
            stale = inflated = 0
        else:
            counts = df["magnitude"].value_counts().reindex(labels, fill_value=0).to_dict()
            stale = int(df["is_stale"].sum())
            inflated = int(df["is_inflated"].sum())

        summary = [{"metric": f"magnitude {label}", "count": int(counts[label])} for label in labels]
        summary.append({"metric": "stale final price", "count": stale})
        summary.append({"metric": "inflated", "count": inflated})
        summary.append({"metric": "total items", "count": int(len(df))})
        return pd.DataFrame(summary)

    def export(self, output_path: str | Path, currencies: Iterable[str] = ()) -> Path:
        """
        Build the report and write it as xlsx (with a Summary sheet) or csv.

        Returns:
            Path of the written file.

        Raises:
            ValueError: If the output format is not supported.
        """
        output_path = Path(output_path)
        suffix = output_path.suffix.lower()
        if suffix not in (".xlsx", ".csv"):
            raise ValueError(f"Unsupported output format: {suffix}")

        df = self.build_report(currencies)
        summary_df = self.summarize(df)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        if suffix == ".csv":
            df.to_csv(output_path, index=False)
        else:
            with pd.ExcelWriter(output_path, engine="openpyxl") as writer:
                df.to_excel(writer, sheet_name="Prices", index=False)
                summary_df.to_excel(writer, sheet_name="Summary", index=False)

        inflated = df[df["is_inflated"]] if not df.empty else df
        for _, row in inflated.iterrows():
            logger.warning(
                f"INFLATED: [{row['product_id']}] {row['name']} {row['sku']} - "
                f"price {row['stored_final_price']}"
            )
        logger.info(f"Wrote price audit of {len(df)} items to {output_path}")
        return output_path
