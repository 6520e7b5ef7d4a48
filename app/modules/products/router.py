from fastapi import APIRouter, Depends, status, Query, Path
from sqlalchemy.orm import Session
from typing import List, Optional
from uuid import UUID

from app.database.database import get_db
from app.modules.auth.dependencies import require_permission
from app.modules.auth.permissions import Permission
from app.modules.auth.schemas import AuthContext
from app.modules.products import service
from app.modules.products.schemas import ProductCreate, ProductUpdate, ProductOut, ProductList

router = APIRouter(prefix="/products", tags=["Products"])

_manage_products = require_permission(Permission.MANAGE_PRODUCTS)


@router.post("/", response_model=ProductOut, status_code=status.HTTP_201_CREATED)
def create_product(
    data: ProductCreate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(_manage_products)
):
    return service.create_product(db, data, auth_context.organization_id, auth_context.user_id)


@router.get("/", response_model=ProductList)
def get_products(
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    search: Optional[str] = Query(None, description="Buscar por nombre, código o descripción"),
    category: Optional[str] = Query(None, description="Filtrar por categoría"),
    include_inactive: bool = Query(False, description="Incluir productos inactivos"),
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(_manage_products)
):
    return service.get_products(
        db, auth_context.organization_id, limit, offset, search, category, include_inactive
    )


@router.get("/categories", response_model=List[str])
def get_categories(
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(_manage_products)
):
    """Categorías usadas por los productos de la organización"""
    return service.get_categories(db, auth_context.organization_id)


@router.get("/{product_id}", response_model=ProductOut)
def get_product(
    product_id: UUID = Path(..., description="ID del producto"),
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(_manage_products)
):
    return service.get_product_by_id(db, auth_context.organization_id, product_id)


@router.patch("/{product_id}", response_model=ProductOut)
def update_product(
    data: ProductUpdate,
    product_id: UUID = Path(..., description="ID del producto"),
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(_manage_products)
):
    return service.update_product(db, auth_context.organization_id, product_id, data)


@router.post("/{product_id}/toggle-active", response_model=ProductOut)
def toggle_product_active(
    product_id: UUID = Path(..., description="ID del producto"),
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(_manage_products)
):
    return service.toggle_product_active(db, auth_context.organization_id, product_id)


@router.delete("/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_product(
    product_id: UUID = Path(..., description="ID del producto"),
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(_manage_products)
):
    """Eliminar producto. Las líneas de documentos ya emitidos no cambian."""
    service.delete_product(db, auth_context.organization_id, product_id)
