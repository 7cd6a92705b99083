# kesti/routers/products.py

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload
from typing import Optional

from kesti.database import get_db
from kesti.core.tenant import TenantContext, get_tenant
from kesti.models.products import Product, ProductCategory
from kesti.schemas.product import (
    CategoryCreate,
    CategoryResponse,
    ProductCreate,
    ProductUpdate,
    ProductResponse,
)

router = APIRouter(
    prefix="/products",
    tags=["Products"],
)

# Clearing the others (stock_quantity, image_url, ...) is allowed
REQUIRED_PRODUCT_FIELDS = ("name", "selling_price", "cost_price", "unit_type")


def _get_owned_category(db: Session, owner_id: str, category_id: str):
    category = (
        db.query(ProductCategory)
        .filter(
            ProductCategory.id == category_id,
            ProductCategory.owner_id == owner_id,
        )
        .first()
    )
    if not category:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Category not found",
        )
    return category


def _get_owned_product(db: Session, owner_id: str, product_id: str):
    product = (
        db.query(Product)
        .options(joinedload(Product.category))
        .filter(
            Product.id == product_id,
            Product.owner_id == owner_id,
        )
        .first()
    )

    if not product:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Product not found",
        )

    return product


# ---------------- CATEGORIES ----------------
@router.post(
    "/categories",
    response_model=CategoryResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_category(
    category_data: CategoryCreate,
    db: Session = Depends(get_db),
    tenant: TenantContext = Depends(get_tenant),
):
    existing = (
        db.query(ProductCategory)
        .filter(
            ProductCategory.name == category_data.name,
            ProductCategory.owner_id == tenant.owner_id,
        )
        .first()
    )
    if existing:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Category with this name already exists",
        )

    category = ProductCategory(name=category_data.name, owner_id=tenant.owner_id)
    db.add(category)
    db.commit()
    db.refresh(category)

    return category


@router.get("/categories", response_model=list[CategoryResponse])
def list_categories(
    db: Session = Depends(get_db),
    tenant: TenantContext = Depends(get_tenant),
):
    return (
        db.query(ProductCategory)
        .filter(ProductCategory.owner_id == tenant.owner_id)
        .order_by(ProductCategory.name)
        .all()
    )


# ---------------- PRODUCTS ----------------
@router.post(
    "",
    response_model=ProductResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_product(
    product_data: ProductCreate,
    db: Session = Depends(get_db),
    tenant: TenantContext = Depends(get_tenant),
):
    if product_data.category_id is not None:
        _get_owned_category(db, tenant.owner_id, product_data.category_id)

    product = Product(
        owner_id=tenant.owner_id,
        **product_data.model_dump(),
    )

    db.add(product)
    db.commit()
    db.refresh(product)

    return product


@router.get("", response_model=list[ProductResponse])
def list_products(
    db: Session = Depends(get_db),
    tenant: TenantContext = Depends(get_tenant),
    search: Optional[str] = Query(None, description="Matches product or category name"),
    category_id: Optional[str] = None,
):
    query = (
        db.query(Product)
        .outerjoin(ProductCategory, Product.category_id == ProductCategory.id)
        .options(joinedload(Product.category))
        .filter(Product.owner_id == tenant.owner_id)
    )

    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(
            or_(
                Product.name.ilike(pattern),
                ProductCategory.name.ilike(pattern),
            )
        )

    if category_id:
        query = query.filter(Product.category_id == category_id)

    return query.order_by(Product.name).all()


@router.get("/low-stock", response_model=list[ProductResponse])
def list_low_stock_products(
    db: Session = Depends(get_db),
    tenant: TenantContext = Depends(get_tenant),
):
    # Only stock-tracked products with a threshold can run low
    return (
        db.query(Product)
        .filter(
            Product.owner_id == tenant.owner_id,
            Product.stock_quantity.isnot(None),
            Product.low_stock_threshold.isnot(None),
            Product.stock_quantity <= Product.low_stock_threshold,
        )
        .order_by(Product.stock_quantity, Product.name)
        .all()
    )


@router.get("/{product_id}", response_model=ProductResponse)
def get_product(
    product_id: str,
    db: Session = Depends(get_db),
    tenant: TenantContext = Depends(get_tenant),
):
    return _get_owned_product(db, tenant.owner_id, product_id)


@router.put("/{product_id}", response_model=ProductResponse)
def update_product(
    product_id: str,
    product_data: ProductUpdate,
    db: Session = Depends(get_db),
    tenant: TenantContext = Depends(get_tenant),
):
    product = _get_owned_product(db, tenant.owner_id, product_id)

    updates = product_data.model_dump(exclude_unset=True)

    if updates.get("category_id") is not None:
        _get_owned_category(db, tenant.owner_id, updates["category_id"])

    for field in REQUIRED_PRODUCT_FIELDS:
        if field in updates and updates[field] in (None, ""):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"{field} cannot be empty",
            )

    for field, value in updates.items():
        setattr(product, field, value)

    db.commit()
    db.refresh(product)

    return product


@router.delete("/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_product(
    product_id: str,
    db: Session = Depends(get_db),
    tenant: TenantContext = Depends(get_tenant),
):
    product = _get_owned_product(db, tenant.owner_id, product_id)

    db.delete(product)
    db.commit()

    return None
