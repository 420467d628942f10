"""
Cart line items and pricing.

Lines are keyed by product id, at most one line per product, quantities are
always >= 1. ``get_cart`` derives counts, subtotal, fees and total from the
current lines on every call.
"""

import logging
from decimal import Decimal

from .errors import InvalidQuantityError
from .models import Cart, CartLine, Product
from .storage import KeyValueStorage, load_envelope, save_envelope

logger = logging.getLogger(__name__)

# Flat surcharges (FCFA), charged only when the cart is not empty
DELIVERY_FEE = Decimal(1500)
PREPARATION_FEE = Decimal(500)

STORAGE_KEY = "monepiceriz-cart"
SCHEMA_VERSION = 1


def _check_quantity(quantity: object) -> int:
    # bool is an int subclass but never a quantity
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise InvalidQuantityError(quantity)
    return quantity


class CartAggregator:
    """Shopping cart held in memory, optionally persisted to durable storage."""

    def __init__(
        self,
        storage: KeyValueStorage | None = None,
        storage_key: str = STORAGE_KEY,
        delivery_fee: Decimal = DELIVERY_FEE,
        preparation_fee: Decimal = PREPARATION_FEE,
    ):
        """
        Initialize CartAggregator.

        Args:
            storage: Durable storage to reload from and save to. Without it the
                cart lives only as long as this object.
            storage_key: Key the cart is persisted under.
            delivery_fee: Flat delivery fee.
            preparation_fee: Flat preparation fee.
        """
        self.storage = storage
        self.storage_key = storage_key
        self.delivery_fee = delivery_fee
        self.preparation_fee = preparation_fee
        self._lines: dict[str, CartLine] = {}
        self._load()

    def _load(self) -> None:
        if self.storage is None:
            return
        envelope = load_envelope(self.storage, self.storage_key)
        if envelope is None:
            return

        data, version = envelope
        if version > SCHEMA_VERSION:
            logger.warning("Discarding cart saved with unsupported schema version %s", version)
            return
        try:
            lines = [CartLine.from_dict(item) for item in data.get("items", [])]
        except (KeyError, TypeError, ValueError, ArithmeticError) as e:
            logger.warning("Discarding malformed persisted cart: %s", e)
            return

        for line in lines:
            if line.quantity < 1:
                continue
            existing = self._lines.get(line.product.id)
            if existing is not None:
                existing.quantity += line.quantity
            else:
                self._lines[line.product.id] = line

    def _persist(self) -> None:
        if self.storage is None:
            return
        state = {"items": [line.to_dict() for line in self._lines.values()]}
        save_envelope(self.storage, self.storage_key, state, SCHEMA_VERSION)

    def add_item(self, product: Product, quantity: int = 1) -> None:
        """
        Add ``quantity`` of a product, merging with its existing line.

        Raises:
            InvalidQuantityError: If quantity is not a positive integer.
        """
        quantity = _check_quantity(quantity)
        if quantity < 1:
            raise InvalidQuantityError(quantity)

        existing = self._lines.get(product.id)
        if existing is not None:
            existing.quantity += quantity
        else:
            self._lines[product.id] = CartLine(product=product, quantity=quantity)
        self._persist()

    def remove_item(self, product_id: str) -> None:
        """Remove a product's line. Absent products are ignored."""
        if self._lines.pop(str(product_id), None) is not None:
            self._persist()

    def update_quantity(self, product_id: str, quantity: int) -> None:
        """
        Set a line's quantity exactly. A quantity <= 0 removes the line.

        Products without a line are ignored.

        Raises:
            InvalidQuantityError: If quantity is not an integer.
        """
        quantity = _check_quantity(quantity)
        product_id = str(product_id)
        if quantity <= 0:
            self.remove_item(product_id)
            return

        line = self._lines.get(product_id)
        if line is None:
            return
        line.quantity = quantity
        self._persist()

    def clear_cart(self) -> None:
        self._lines.clear()
        self._persist()

    def get_cart(self) -> Cart:
        """Compute the cart view from the current lines."""
        lines = [
            CartLine(product=line.product, quantity=line.quantity)
            for line in self._lines.values()
        ]
        item_count = sum(line.quantity for line in lines)
        subtotal = sum((line.line_total for line in lines), Decimal(0))

        has_items = item_count > 0
        delivery_fee = self.delivery_fee if has_items else Decimal(0)
        preparation_fee = self.preparation_fee if has_items else Decimal(0)

        return Cart(
            lines=lines,
            item_count=item_count,
            subtotal=subtotal,
            delivery_fee=delivery_fee,
            preparation_fee=preparation_fee,
            total=subtotal + delivery_fee + preparation_fee,
        )

    def total_items(self) -> int:
        return sum(line.quantity for line in self._lines.values())

    def is_in_cart(self, product_id: str) -> bool:
        return str(product_id) in self._lines

    def item_quantity(self, product_id: str) -> int:
        line = self._lines.get(str(product_id))
        return line.quantity if line else 0
