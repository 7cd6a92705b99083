# =========================================================
# CART STORE
#
# In-memory cart for one till session.
# - One line per product id (adding again merges)
# - line_total is recomputed on every mutation, never at read time
# - No input validation: callers parse and reject bad numbers first
#   (see kesti.services.cart_editor)
# =========================================================

from decimal import Decimal

from kesti.schemas.cart import CartLine
from kesti.schemas.product import ProductResponse

ONE = Decimal("1")
ZERO = Decimal("0")


def _to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def calculate_line_total(product: ProductResponse, quantity: int, unit_quantity=None) -> Decimal:
    """Price of ``quantity`` orders of ``product``.

    Discrete products ignore ``unit_quantity``. Weight and volume products
    multiply by it; a missing or zero unit quantity prices like a discrete
    product.
    """
    price = _to_decimal(product.selling_price)

    if product.unit_type == "item" or not unit_quantity:
        return price * quantity

    return price * quantity * _to_decimal(unit_quantity)


def format_unit_label(unit_type: str, quantity) -> str:
    if unit_type == "kg":
        return "kg" if quantity == 1 else "kgs"
    if unit_type == "g":
        return "g"
    if unit_type == "l":
        return "liter" if quantity == 1 else "liters"
    if unit_type == "ml":
        return "ml"
    return "item" if quantity == 1 else "items"


class CartStore:
    def __init__(self):
        self._lines: list[CartLine] = []

    @property
    def lines(self) -> list[CartLine]:
        return list(self._lines)

    def __len__(self):
        return len(self._lines)

    def is_empty(self) -> bool:
        return not self._lines

    def get_line(self, product_id: str) -> CartLine | None:
        for line in self._lines:
            if line.product.id == product_id:
                return line
        return None

    # -----------------------------------------------------
    # MUTATIONS
    # -----------------------------------------------------
    def add_to_cart(self, product: ProductResponse, quantity: int = 1, unit_quantity=None) -> CartLine:
        # unit_quantity is replaced on merge, never summed
        actual_unit_quantity = _to_decimal(unit_quantity) if unit_quantity else ONE

        existing = self.get_line(product.id)
        if existing:
            existing.quantity = existing.quantity + quantity
            existing.unit_quantity = actual_unit_quantity
            existing.line_total = calculate_line_total(
                existing.product, existing.quantity, existing.unit_quantity
            )
            return existing

        line = CartLine(
            product=product,
            quantity=quantity,
            unit_quantity=actual_unit_quantity,
            line_total=calculate_line_total(product, quantity, actual_unit_quantity),
        )
        self._lines.append(line)
        return line

    def remove_from_cart(self, product_id: str) -> None:
        self._lines = [line for line in self._lines if line.product.id != product_id]

    def update_quantity(self, product_id: str, quantity: int, unit_quantity=None) -> None:
        if quantity <= 0:
            self.remove_from_cart(product_id)
            return

        line = self.get_line(product_id)
        if line is None:
            return

        if unit_quantity is not None:
            # A zero unit quantity prices like one, so store it as one
            line.unit_quantity = _to_decimal(unit_quantity) or ONE
        elif not line.unit_quantity:
            line.unit_quantity = ONE

        line.quantity = quantity
        line.line_total = calculate_line_total(line.product, quantity, line.unit_quantity)

    def increment_quantity(self, product_id: str) -> None:
        line = self.get_line(product_id)
        if line is None:
            return

        line.quantity += 1
        line.line_total = calculate_line_total(line.product, line.quantity, line.unit_quantity)

    def decrement_quantity(self, product_id: str) -> None:
        line = self.get_line(product_id)
        if line is None:
            return

        # Going below one order removes the product
        if line.quantity <= 1:
            self.remove_from_cart(product_id)
            return

        line.quantity = max(1, line.quantity - 1)
        line.line_total = calculate_line_total(line.product, line.quantity, line.unit_quantity)

    def clear_cart(self) -> None:
        self._lines = []

    # -----------------------------------------------------
    # READS
    # -----------------------------------------------------
    def get_total_price(self) -> Decimal:
        return sum((line.line_total for line in self._lines), ZERO)

    def get_item_total_price(self, product_id: str) -> Decimal:
        line = self.get_line(product_id)
        return line.line_total if line else ZERO

    def get_total_items(self) -> int:
        # Counts orders, not kilograms or litres
        return sum(line.quantity for line in self._lines)

    def format_unit_label(self, unit_type: str, quantity) -> str:
        return format_unit_label(unit_type, quantity)
