"""
Servicio de productos

Al eliminar un producto las líneas de facturas y cotizaciones que lo
referencian conservan su descripción y precio; solo pierden el product_id.
"""
import logging
from typing import List, Optional
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.modules.products.models import Product
from app.modules.products.schemas import ProductCreate, ProductUpdate, ProductList, ProductOut

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = {"name", "sku", "description", "price", "category", "unit", "is_active"}


def _commit_or_conflict(db: Session, sku: Optional[str]):
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.info(f"Duplicate product sku {sku}: {e.orig}")
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Ya existe un producto con el código {sku}"
        )


def create_product(db: Session, data: ProductCreate, organization_id: UUID, user_id: UUID) -> Product:
    product = Product(**data.model_dump(), organization_id=organization_id, created_by=user_id)
    db.add(product)
    _commit_or_conflict(db, data.sku)
    db.refresh(product)
    logger.info(f"Product {product.id} created in organization {organization_id}")
    return product


def get_products(
    db: Session,
    organization_id: UUID,
    limit: int = 100,
    offset: int = 0,
    search: Optional[str] = None,
    category: Optional[str] = None,
    include_inactive: bool = False
) -> ProductList:
    query = db.query(Product).filter(Product.organization_id == organization_id)

    if not include_inactive:
        query = query.filter(Product.is_active.is_(True))
    if category:
        query = query.filter(Product.category == category)
    if search:
        term = f"%{search}%"
        query = query.filter(or_(
            Product.name.ilike(term),
            Product.sku.ilike(term),
            Product.description.ilike(term)
        ))

    total = query.count()
    products = query.order_by(Product.name).offset(offset).limit(limit).all()
    return ProductList(
        items=[ProductOut.model_validate(p) for p in products],
        total=total,
        limit=limit,
        offset=offset
    )


def get_product_by_id(db: Session, organization_id: UUID, product_id: UUID) -> Product:
    product = db.query(Product).filter(
        Product.id == product_id, Product.organization_id == organization_id
    ).first()
    if not product:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Producto no encontrado")
    return product


def get_active_product(db: Session, organization_id: UUID, product_id: UUID) -> Product:
    """Producto usable como línea de un documento nuevo"""
    product = get_product_by_id(db, organization_id, product_id)
    if not product.is_active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"El producto {product.name} está inactivo"
        )
    return product


def update_product(
    db: Session, organization_id: UUID, product_id: UUID, data: ProductUpdate
) -> Product:
    product = get_product_by_id(db, organization_id, product_id)

    for key, value in data.model_dump(exclude_unset=True).items():
        # name, price, unit e is_active no admiten null
        if value is None and key in ("name", "price", "unit", "is_active"):
            continue
        if key in UPDATABLE_FIELDS:
            setattr(product, key, value)

    _commit_or_conflict(db, product.sku)
    db.refresh(product)
    return product


def toggle_product_active(db: Session, organization_id: UUID, product_id: UUID) -> Product:
    product = get_product_by_id(db, organization_id, product_id)
    product.is_active = not product.is_active
    db.commit()
    db.refresh(product)
    return product


def delete_product(db: Session, organization_id: UUID, product_id: UUID):
    product = get_product_by_id(db, organization_id, product_id)
    db.delete(product)
    db.commit()
    logger.info(f"Product {product_id} deleted from organization {organization_id}")


def get_categories(db: Session, organization_id: UUID) -> List[str]:
    rows = db.query(Product.category).filter(
        Product.organization_id == organization_id,
        Product.category.isnot(None)
    ).distinct().order_by(Product.category).all()
    return [category for (category,) in rows]
