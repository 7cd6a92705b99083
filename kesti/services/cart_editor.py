# kesti/services/cart_editor.py

"""
Draft buffer for editing one cart line.

The text a cashier types is kept apart from the committed line in the
cart store. A draft reaches the store only once it parses to a finite
number greater than zero, so a half-typed "0." or an empty field never
turns into a NaN or a zero-priced line.
"""

from decimal import Decimal, InvalidOperation

from kesti.services.cart_store import CartStore


def _parse_positive(text) -> Decimal | None:
    if text is None:
        return None

    raw = str(text).strip().replace(",", ".")
    if not raw:
        return None

    try:
        value = Decimal(raw)
    except InvalidOperation:
        return None

    if not value.is_finite() or value <= 0:
        return None

    return value


def is_zero_quantity(text) -> bool:
    """True for any spelling of zero ("0", "00", "0.0", "0,0")."""
    if text is None:
        return False

    try:
        return Decimal(str(text).strip().replace(",", ".")) == 0
    except InvalidOperation:
        return False


def parse_quantity(text) -> int | None:
    """Whole number of orders, or None."""
    value = _parse_positive(text)
    if value is None or value != value.to_integral_value():
        return None
    return int(value)


def parse_unit_quantity(text) -> Decimal | None:
    """Amount per order (kg, l, ...), or None."""
    return _parse_positive(text)


class CartLineEditor:
    def __init__(self, store: CartStore, product_id: str):
        self.store = store
        self.product_id = product_id
        self.quantity_text = ""
        self.unit_quantity_text = ""
        self.sync()

    def sync(self) -> None:
        """Reload both drafts from the committed line."""
        line = self.store.get_line(self.product_id)
        if line is None:
            self.quantity_text = ""
            self.unit_quantity_text = ""
            return

        self.quantity_text = str(line.quantity)
        self.unit_quantity_text = str(line.unit_quantity)

    def discard(self) -> None:
        self.sync()

    def set_quantity_text(self, text: str) -> bool:
        self.quantity_text = text

        quantity = parse_quantity(text)
        if quantity is None:
            return False

        return self._commit(quantity=quantity)

    def set_unit_quantity_text(self, text: str) -> bool:
        self.unit_quantity_text = text

        unit_quantity = parse_unit_quantity(text)
        if unit_quantity is None:
            return False

        return self._commit(unit_quantity=unit_quantity)

    def _commit(self, quantity=None, unit_quantity=None) -> bool:
        line = self.store.get_line(self.product_id)
        if line is None:
            return False

        self.store.update_quantity(
            self.product_id,
            quantity if quantity is not None else line.quantity,
            unit_quantity,
        )
        return True
