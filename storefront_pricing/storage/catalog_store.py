"""
Catalog storage module.

File-backed catalog repository. Products are stored one JSON object per
line so a pricing pass can stream them without loading the whole catalog.
"""

import json
import logging
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterable, Iterator

from storefront_pricing.pricing.models import Product

logger = logging.getLogger(__name__)

DEFAULT_CATALOG_PATH = "data/catalog.jsonl"


class CatalogRepository(ABC):
    """Read/write access to catalog products used by the pricing pass."""

    @abstractmethod
    def iter_active(self) -> Iterator[Product]:
        """Yield active products one at a time."""

    @abstractmethod
    def iter_all(self) -> Iterator[Product]:
        """Yield every product, active or not."""

    @abstractmethod
    def get(self, product_id: str) -> Product | None:
        """Get one product by ID."""

    @abstractmethod
    def save(self, product: Product) -> None:
        """Stage a product write."""

    @abstractmethod
    def flush(self) -> int:
        """Persist staged writes; returns the number of products written."""


class JsonLinesCatalogStore(CatalogRepository):
    """
    Catalog repository backed by a JSON-lines file.

    Saves are staged in memory and applied by flush(), which rewrites the
    file once. Reads see staged writes.
    """

    def __init__(self, catalog_path: str | Path | None = None) -> None:
        """
        Initialize the catalog store.

        Args:
            catalog_path: Path to the JSON-lines file. Defaults to data/catalog.jsonl
        """
        self.catalog_path = Path(catalog_path or DEFAULT_CATALOG_PATH)
        self._lock = threading.Lock()
        self._staged: dict[str, Product] = {}

    def _iter_file(self) -> Iterator[Product]:
        if not self.catalog_path.exists():
            return

        with open(self.catalog_path, encoding="utf-8") as f:
            for line_no, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    yield Product.from_dict(json.loads(line))
                except (json.JSONDecodeError, ValueError, TypeError) as e:
                    logger.warning(f"Skipping invalid catalog line {line_no}: {e}")

    def iter_all(self) -> Iterator[Product]:
        seen: set[str] = set()
        for product in self._iter_file():
            seen.add(product.id)
            with self._lock:
                staged = self._staged.get(product.id)
            yield staged or product
        with self._lock:
            extra = [p for pid, p in self._staged.items() if pid not in seen]
        yield from extra

    def iter_active(self) -> Iterator[Product]:
        for product in self.iter_all():
            if product.is_active:
                yield product

    def get(self, product_id: str) -> Product | None:
        with self._lock:
            staged = self._staged.get(product_id)
        if staged is not None:
            return staged
        for product in self._iter_file():
            if product.id == product_id:
                return product
        return None

    def save(self, product: Product) -> None:
        with self._lock:
            self._staged[product.id] = product

    def save_many(self, products: Iterable[Product]) -> None:
        for product in products:
            self.save(product)

    def flush(self) -> int:
        """
        Rewrite the catalog file with staged products applied.

        Staged products are only discarded once the new file is in place;
        if the write fails they stay staged and the error is raised.

        Returns:
            int: Number of staged products written.
        """
        with self._lock:
            staged = dict(self._staged)

        if not staged:
            return 0

        self.catalog_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.catalog_path.with_suffix(".tmp")
        written: set[str] = set()

        try:
            with open(tmp_path, "w", encoding="utf-8") as out:
                for product in self._iter_file():
                    product = staged.get(product.id, product)
                    written.add(product.id)
                    out.write(json.dumps(product.to_dict(), ensure_ascii=False) + "\n")
                for product_id, product in staged.items():
                    if product_id not in written:
                        out.write(json.dumps(product.to_dict(), ensure_ascii=False) + "\n")
            tmp_path.replace(self.catalog_path)
        except OSError as e:
            logger.error(f"Failed to write catalog {self.catalog_path}: {e}")
            raise
        finally:
            if tmp_path.exists():
                tmp_path.unlink()

        with self._lock:
            for product_id, product in staged.items():
                # A save that landed during the write stays staged
                if self._staged.get(product_id) is product:
                    del self._staged[product_id]

        logger.info(f"Flushed {len(staged)} product(s) to {self.catalog_path}")
        return len(staged)

    @property
    def pending_count(self) -> int:
        """Number of staged products not yet written."""
        with self._lock:
            return len(self._staged)

    def count(self) -> int:
        return sum(1 for _ in self.iter_all())
