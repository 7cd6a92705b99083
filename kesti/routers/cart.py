# =========================================================
# CART ROUTER
#
# One in-memory cart per (owner, device).
# - Quantities arrive as text and are parsed here, so the cart
#   store only ever sees valid numbers
# - Product prices are snapshotted when a line is first added
# - Mutations are refused (409) while the cart is being checked out
# =========================================================

from contextlib import contextmanager

from fastapi import APIRouter, Depends, HTTPException, status

from kesti.core.config import settings
from kesti.core.tenant import TenantContext, get_tenant
from kesti.schemas.cart import (
    CartItemAdd,
    CartItemUpdate,
    CartLineResponse,
    CartResponse,
)
from kesti.services.backend import BackendError, DataBackend, get_backend
from kesti.services.cart_editor import (
    is_zero_quantity,
    parse_quantity,
    parse_unit_quantity,
)
from kesti.services.cart_sessions import CartSession, cart_sessions
from kesti.services.cart_store import CartStore
from kesti.services.checkout import CheckoutInProgressError

router = APIRouter(prefix="/cart", tags=["Cart"])


def get_cart_session(tenant: TenantContext = Depends(get_tenant)) -> CartSession:
    return cart_sessions.get(tenant)


def cart_response(store: CartStore) -> CartResponse:
    lines = [
        CartLineResponse(
            product_id=line.product.id,
            name=line.product.name,
            unit_type=line.product.unit_type,
            unit_label=store.format_unit_label(
                line.product.unit_type,
                line.quantity if line.product.unit_type == "item" else line.unit_quantity,
            ),
            selling_price=line.product.selling_price,
            quantity=line.quantity,
            unit_quantity=line.unit_quantity,
            line_total=line.line_total,
        )
        for line in store.lines
    ]

    return CartResponse(
        lines=lines,
        total_price=store.get_total_price(),
        total_items=store.get_total_items(),
        currency=settings.CURRENCY,
    )


def _parse_unit_quantity_or_400(text):
    if text is None:
        return None

    unit_quantity = parse_unit_quantity(text)
    if unit_quantity is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Please enter a valid unit quantity",
        )
    return unit_quantity


def _require_line(store: CartStore, product_id: str):
    if store.get_line(product_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Product not in cart",
        )


@contextmanager
def _locked_cart(session: CartSession):
    try:
        with session.editing() as store:
            yield store
    except CheckoutInProgressError:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Checkout in progress, try again shortly",
        )


@router.get("", response_model=CartResponse)
def view_cart(session: CartSession = Depends(get_cart_session)):
    return cart_response(session.store)


@router.post("/items", response_model=CartResponse)
def add_item(
    item: CartItemAdd,
    session: CartSession = Depends(get_cart_session),
    tenant: TenantContext = Depends(get_tenant),
    backend: DataBackend = Depends(get_backend),
):
    quantity = parse_quantity(item.quantity)
    if quantity is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Please enter a valid quantity",
        )

    unit_quantity = _parse_unit_quantity_or_400(item.unit_quantity)

    try:
        product = backend.fetch_product(tenant, item.product_id)
    except BackendError:
        raise HTTPException(status_code=500, detail="Failed to load product")

    if product is None:
        raise HTTPException(status_code=404, detail="Product not found")

    with _locked_cart(session) as store:
        store.add_to_cart(product, quantity, unit_quantity)
        return cart_response(store)


@router.put("/items/{product_id}", response_model=CartResponse)
def update_item(
    product_id: str,
    item: CartItemUpdate,
    session: CartSession = Depends(get_cart_session),
):
    with _locked_cart(session) as store:
        _require_line(store, product_id)

        # Zero removes the line, like the minus button on one order
        if is_zero_quantity(item.quantity):
            store.update_quantity(product_id, 0)
            return cart_response(store)

        quantity = parse_quantity(item.quantity)
        if quantity is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Please enter a valid quantity",
            )

        unit_quantity = _parse_unit_quantity_or_400(item.unit_quantity)

        store.update_quantity(product_id, quantity, unit_quantity)
        return cart_response(store)


@router.post("/items/{product_id}/increment", response_model=CartResponse)
def increment_item(
    product_id: str,
    session: CartSession = Depends(get_cart_session),
):
    with _locked_cart(session) as store:
        _require_line(store, product_id)
        store.increment_quantity(product_id)
        return cart_response(store)


@router.post("/items/{product_id}/decrement", response_model=CartResponse)
def decrement_item(
    product_id: str,
    session: CartSession = Depends(get_cart_session),
):
    with _locked_cart(session) as store:
        _require_line(store, product_id)
        store.decrement_quantity(product_id)
        return cart_response(store)


@router.delete("/items/{product_id}", response_model=CartResponse)
def remove_item(
    product_id: str,
    session: CartSession = Depends(get_cart_session),
):
    with _locked_cart(session) as store:
        store.remove_from_cart(product_id)
        return cart_response(store)


@router.delete("", response_model=CartResponse)
def clear_cart(session: CartSession = Depends(get_cart_session)):
    with _locked_cart(session) as store:
        store.clear_cart()
        return cart_response(store)
