# =========================================================
# CREDITS ROUTER
#
# Sales taken on credit (debts) and the customers who owe them.
# - Credit checkout runs the regular checkout steps, recorded
#   against a customer instead of as a sale
# - Payments can be partial; the final one records a regular sale
# =========================================================

import logging
from datetime import date, datetime, time
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from kesti.database import get_db
from kesti.core.config import settings
from kesti.core.rate_limiter import limiter
from kesti.core.subscription import require_active_tenant
from kesti.core.tenant import TenantContext, get_tenant
from kesti.models.credits import CreditCustomer, CreditSale
from kesti.routers.cart import get_cart_session
from kesti.schemas.checkout import CheckoutResponse, CreditPaymentResponse
from kesti.schemas.credit import (
    CreditCheckoutRequest,
    CreditCustomerCreate,
    CreditCustomerResponse,
    CreditPaymentRequest,
    CreditSaleResponse,
    CreditStatus,
    CreditSummaryResponse,
)
from kesti.services.backend import BackendError, DataBackend, get_backend
from kesti.services.cart_sessions import CartSession
from kesti.services.checkout import (
    CheckoutInProgressError,
    CheckoutOrchestrator,
    SaleCreationError,
    SaleItemsInsertError,
)
from kesti.services.credits import (
    CreditPaymentError,
    CreditSaleNotFoundError,
    settle_credit_payment,
)

router = APIRouter(prefix="/credits", tags=["Credits"])

logger = logging.getLogger("kesti")


# =========================================================
# CUSTOMERS
# =========================================================
@router.post("/customers", response_model=CreditCustomerResponse, status_code=201)
def create_customer(
    customer: CreditCustomerCreate,
    db: Session = Depends(get_db),
    tenant: TenantContext = Depends(get_tenant),
):
    db_customer = CreditCustomer(
        owner_id=tenant.owner_id,
        name=customer.name.strip(),
        phone=customer.phone,
    )

    try:
        db.add(db_customer)
        db.commit()
        db.refresh(db_customer)
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=400, detail="Unable to create customer")

    return db_customer


@router.get("/customers", response_model=list[CreditCustomerResponse])
def list_customers(
    db: Session = Depends(get_db),
    tenant: TenantContext = Depends(get_tenant),
):
    return (
        db.query(CreditCustomer)
        .filter(CreditCustomer.owner_id == tenant.owner_id)
        .order_by(CreditCustomer.name)
        .all()
    )


# =========================================================
# CREDIT CHECKOUT
# =========================================================
@router.post("/checkout", response_model=CheckoutResponse)
@limiter.limit(settings.CHECKOUT_RATE_LIMIT)
def credit_checkout(
    request: Request,
    payload: CreditCheckoutRequest,
    db: Session = Depends(get_db),
    tenant: TenantContext = Depends(require_active_tenant),
    session: CartSession = Depends(get_cart_session),
    backend: DataBackend = Depends(get_backend),
):
    customer = (
        db.query(CreditCustomer)
        .filter(
            CreditCustomer.id == payload.customer_id,
            CreditCustomer.owner_id == tenant.owner_id,
        )
        .first()
    )
    if not customer:
        raise HTTPException(status_code=404, detail="Customer not found")

    orchestrator = CheckoutOrchestrator(backend)

    try:
        with session.checkout_guard() as store:
            return orchestrator.checkout_on_credit(tenant, store, customer.id)

    except CheckoutInProgressError:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Checkout already in progress",
        )

    except SaleItemsInsertError as e:
        logger.error(f"Credit checkout left credit sale {e.sale_id} without items")
        raise HTTPException(status_code=500, detail="Failed to process checkout")

    except SaleCreationError:
        raise HTTPException(status_code=500, detail="Failed to process checkout")


# =========================================================
# LIST CREDIT SALES
# =========================================================
@router.get("", response_model=list[CreditSaleResponse])
def list_credit_sales(
    db: Session = Depends(get_db),
    tenant: TenantContext = Depends(get_tenant),
    status_filter: Optional[CreditStatus] = Query(None, alias="status"),
    customer_id: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
):
    if start_date and end_date and end_date < start_date:
        raise HTTPException(
            status_code=400,
            detail="end_date cannot be before start_date",
        )

    query = (
        db.query(CreditSale)
        .options(
            joinedload(CreditSale.customer),
            joinedload(CreditSale.items),
        )
        .filter(CreditSale.owner_id == tenant.owner_id)
    )

    if status_filter == "paid":
        query = query.filter(CreditSale.is_paid.is_(True))
    elif status_filter == "unpaid":
        query = query.filter(CreditSale.is_paid.is_(False))

    if customer_id:
        query = query.filter(CreditSale.customer_id == customer_id)

    if start_date:
        query = query.filter(CreditSale.created_at >= datetime.combine(start_date, time.min))
    if end_date:
        query = query.filter(CreditSale.created_at <= datetime.combine(end_date, time.max))

    return query.order_by(CreditSale.created_at.desc()).all()


# =========================================================
# SUMMARY
# =========================================================
@router.get("/summary", response_model=CreditSummaryResponse)
def credit_summary(
    db: Session = Depends(get_db),
    tenant: TenantContext = Depends(get_tenant),
):
    total_credit = (
        db.query(func.coalesce(func.sum(CreditSale.total_amount), 0))
        .filter(CreditSale.owner_id == tenant.owner_id)
        .scalar()
    )

    unpaid_count, total_unpaid = (
        db.query(
            func.count(CreditSale.id),
            func.coalesce(func.sum(CreditSale.remaining_amount), 0),
        )
        .filter(
            CreditSale.owner_id == tenant.owner_id,
            CreditSale.is_paid.is_(False),
        )
        .one()
    )

    return {
        "total_credit": Decimal(str(total_credit or 0)),
        "total_unpaid": Decimal(str(total_unpaid or 0)),
        "unpaid_count": unpaid_count,
    }


# =========================================================
# GET SINGLE CREDIT SALE
# =========================================================
@router.get("/{credit_sale_id}", response_model=CreditSaleResponse)
def get_credit_sale(
    credit_sale_id: str,
    tenant: TenantContext = Depends(get_tenant),
    backend: DataBackend = Depends(get_backend),
):
    try:
        credit_sale = backend.fetch_credit_sale(tenant, credit_sale_id)
    except BackendError:
        raise HTTPException(status_code=500, detail="Failed to load credit sale")

    if credit_sale is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Credit sale not found",
        )

    return credit_sale


# =========================================================
# PAYMENTS
# =========================================================
@router.post("/{credit_sale_id}/payments", response_model=CreditPaymentResponse)
def pay_credit_sale(
    credit_sale_id: str,
    payment: CreditPaymentRequest,
    tenant: TenantContext = Depends(get_tenant),
    backend: DataBackend = Depends(get_backend),
):
    try:
        return settle_credit_payment(
            backend,
            tenant,
            credit_sale_id,
            amount=payment.amount,
            full_payment=payment.full_payment,
        )

    except CreditSaleNotFoundError:
        raise HTTPException(status_code=404, detail="Credit sale not found")

    except CreditPaymentError as e:
        raise HTTPException(status_code=400, detail=str(e))

    except BackendError as e:
        logger.error(f"Payment on credit sale {credit_sale_id} failed: {e}")
        raise HTTPException(status_code=500, detail="Failed to update payment")
