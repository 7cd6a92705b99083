# =========================================================
# SALES ROUTER
#
# CHECKOUT:
# - Turns the caller's cart into a sale (see services/checkout.py)
# - Blocked for suspended tenants and expired subscriptions
# - One checkout at a time per cart
#
# HISTORY:
# - Recent sales, date ranges, single sale, today's stats
# =========================================================

import logging
from datetime import date, datetime, time, timezone
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from kesti.database import get_db
from kesti.core.config import settings
from kesti.core.rate_limiter import limiter
from kesti.core.subscription import require_active_tenant
from kesti.core.tenant import TenantContext, get_tenant
from kesti.models.sales import Sale
from kesti.routers.cart import get_cart_session
from kesti.schemas.checkout import CheckoutResponse
from kesti.schemas.sale import SaleResponse, TodayStatsResponse
from kesti.services.backend import DataBackend, get_backend
from kesti.services.cart_sessions import CartSession
from kesti.services.checkout import (
    CheckoutInProgressError,
    CheckoutOrchestrator,
    SaleCreationError,
    SaleItemsInsertError,
)

router = APIRouter(prefix="/sales", tags=["Sales"])

logger = logging.getLogger("kesti")


# =========================================================
# CHECKOUT
# =========================================================
@router.post("/checkout", response_model=CheckoutResponse)
@limiter.limit(settings.CHECKOUT_RATE_LIMIT)
def checkout(
    request: Request,
    tenant: TenantContext = Depends(require_active_tenant),
    session: CartSession = Depends(get_cart_session),
    backend: DataBackend = Depends(get_backend),
):
    orchestrator = CheckoutOrchestrator(backend)

    try:
        with session.checkout_guard() as store:
            return orchestrator.checkout(tenant, store)

    except CheckoutInProgressError:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Checkout already in progress",
        )

    except SaleItemsInsertError as e:
        logger.error(f"Checkout left sale {e.sale_id} without items")
        raise HTTPException(status_code=500, detail="Failed to process checkout")

    except SaleCreationError:
        raise HTTPException(status_code=500, detail="Failed to process checkout")


# =========================================================
# LIST SALES
# =========================================================
@router.get("", response_model=list[SaleResponse])
def list_sales(
    db: Session = Depends(get_db),
    tenant: TenantContext = Depends(get_tenant),
    limit: int = Query(settings.RECENT_SALES_DEFAULT_LIMIT, ge=1, le=100),
    offset: int = Query(0, ge=0),
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
):
    if start_date and end_date and end_date < start_date:
        raise HTTPException(
            status_code=400,
            detail="end_date cannot be before start_date",
        )

    query = (
        db.query(Sale)
        .options(joinedload(Sale.items))
        .filter(Sale.owner_id == tenant.owner_id)
    )

    if start_date:
        query = query.filter(Sale.created_at >= datetime.combine(start_date, time.min))
    if end_date:
        query = query.filter(Sale.created_at <= datetime.combine(end_date, time.max))

    return (
        query
        .order_by(Sale.created_at.desc())
        .limit(limit)
        .offset(offset)
        .all()
    )


# =========================================================
# TODAY STATS
# =========================================================
@router.get("/stats/today", response_model=TodayStatsResponse)
def today_stats(
    db: Session = Depends(get_db),
    tenant: TenantContext = Depends(get_tenant),
):
    today = datetime.now(timezone.utc).date()
    start_dt = datetime.combine(today, time.min)
    end_dt = datetime.combine(today, time.max)

    total_sales, total_revenue = (
        db.query(
            func.count(Sale.id),
            func.coalesce(func.sum(Sale.total_amount), 0),
        )
        .filter(
            Sale.owner_id == tenant.owner_id,
            Sale.created_at.between(start_dt, end_dt),
        )
        .one()
    )

    total_revenue = Decimal(str(total_revenue or 0))

    if total_sales:
        average_sale = (total_revenue / total_sales).quantize(Decimal("0.01"))
    else:
        average_sale = Decimal("0.00")

    return {
        "total_sales": total_sales,
        "total_revenue": total_revenue,
        "average_sale": average_sale,
    }


# =========================================================
# GET SINGLE SALE
# =========================================================
@router.get("/{sale_id}", response_model=SaleResponse)
def get_sale(
    sale_id: str,
    db: Session = Depends(get_db),
    tenant: TenantContext = Depends(get_tenant),
):
    sale = (
        db.query(Sale)
        .options(joinedload(Sale.items))
        .filter(
            Sale.id == sale_id,
            Sale.owner_id == tenant.owner_id,
        )
        .first()
    )

    if not sale:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Sale not found",
        )

    return sale
