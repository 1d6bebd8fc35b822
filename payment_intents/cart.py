"""
Trusted price list and server-side cart totals.

Quantities come from the buyer and prices from the catalog file, so the
amount sent to the gateway never depends on a client-computed total.
"""

import json
import logging
from pathlib import Path
from typing import Iterable, Optional

from pydantic import BaseModel

from payment_intents.exceptions import ValidationError

logger = logging.getLogger(__name__)


class Product(BaseModel):
    title: str
    price: int                      # minor units
    thumbnail: Optional[str] = None


class CartLine(BaseModel):
    title: str
    quantity: int


class Catalog:

    def __init__(self, products: Iterable[Product]):
        self._products = list(products)
        self._by_title = {}
        for product in self._products:
            if product.title in self._by_title:
                raise ValueError(f"Duplicate product title in catalog: {product.title}")
            self._by_title[product.title] = product

    @classmethod
    def from_file(cls, path: Path) -> "Catalog":
        if not path.exists():
            logger.error("Catalog file %s not found", path)
            raise FileNotFoundError(f"Catalog file {path} not found")
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        return cls(Product(**item) for item in data)

    def products(self) -> list[Product]:
        return list(self._products)

    def price_of(self, title: str) -> int:
        product = self._by_title.get(title)
        if product is None:
            raise ValidationError(f"Unknown product: {title}")
        return product.price


def compute_amount(lines: Iterable[CartLine], catalog: Catalog) -> int:
    """Sum price * quantity over the cart. Rejects totals that are not positive."""
    total = 0
    for line in lines:
        price = catalog.price_of(line.title)
        if line.quantity < 0:
            raise ValidationError(f"Quantity for {line.title} must not be negative")
        total += price * line.quantity

    if total <= 0:
        raise ValidationError("Cart total must be greater than zero")
    return total
