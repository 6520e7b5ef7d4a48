"""
Routers de cuentas de cobro y pagos

Configurar cuentas requiere manage_settings; consultarlas y registrar pagos
requiere manage_payments.
"""
from fastapi import APIRouter, Depends, HTTPException, status, Query, Path
from sqlalchemy.orm import Session
from typing import List, Optional
from uuid import UUID
from datetime import date

from app.database.database import get_db
from app.modules.auth.dependencies import require_permission
from app.modules.auth.permissions import Permission
from app.modules.auth.schemas import AuthContext
from app.modules.payments.service import PaymentAccountService, PaymentService
from app.modules.payments.schemas import (
    PaymentAccountCreate, PaymentAccountUpdate, PaymentAccountOut, PaymentAccountValidation,
    PaymentCreate, PaymentUpdate, PaymentOut, PaymentList
)

accounts_router = APIRouter(prefix="/payment-accounts", tags=["Payment Accounts"])
router = APIRouter(prefix="/payments", tags=["Payments"])

_manage_settings = require_permission(Permission.MANAGE_SETTINGS)
_manage_payments = require_permission(Permission.MANAGE_PAYMENTS)


# ===== CUENTAS DE COBRO =====

@accounts_router.post("/", response_model=PaymentAccountOut, status_code=status.HTTP_201_CREATED)
def create_payment_account(
    account_data: PaymentAccountCreate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(_manage_settings)
):
    """
    Crear cuenta de cobro

    La primera cuenta de la organización, o una creada con is_default=true,
    queda como cuenta por defecto.
    """
    service = PaymentAccountService(db)
    return service.create_account(account_data, auth_context.organization_id, auth_context.user_id)


@accounts_router.get("/", response_model=List[PaymentAccountOut])
def list_payment_accounts(
    include_inactive: bool = Query(False, description="Incluir cuentas inactivas"),
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(_manage_payments)
):
    service = PaymentAccountService(db)
    return service.list_accounts(auth_context.organization_id, include_inactive)


@accounts_router.get("/validation", response_model=PaymentAccountValidation)
def validate_payment_accounts(
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(_manage_payments)
):
    """Indica si se pueden registrar pagos y, si no, a dónde configurar cuentas"""
    service = PaymentAccountService(db)
    return service.validate_payment_accounts(auth_context.organization_id)


@accounts_router.get("/default", response_model=PaymentAccountOut)
def get_default_payment_account(
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(_manage_payments)
):
    service = PaymentAccountService(db)
    account = service.get_default(auth_context.organization_id)
    if not account:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No hay cuenta de cobro por defecto")
    return account


@accounts_router.get("/{account_id}", response_model=PaymentAccountOut)
def get_payment_account(
    account_id: UUID = Path(..., description="ID de la cuenta"),
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(_manage_payments)
):
    service = PaymentAccountService(db)
    return service.get_account(account_id, auth_context.organization_id)


@accounts_router.patch("/{account_id}", response_model=PaymentAccountOut)
def update_payment_account(
    account_data: PaymentAccountUpdate,
    account_id: UUID = Path(..., description="ID de la cuenta"),
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(_manage_settings)
):
    service = PaymentAccountService(db)
    return service.update_account(account_id, account_data, auth_context.organization_id)


@accounts_router.post("/{account_id}/set-default", response_model=PaymentAccountOut)
def set_default_payment_account(
    account_id: UUID = Path(..., description="ID de la cuenta"),
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(_manage_settings)
):
    service = PaymentAccountService(db)
    return service.set_default(account_id, auth_context.organization_id)


@accounts_router.delete("/{account_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_payment_account(
    account_id: UUID = Path(..., description="ID de la cuenta"),
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(_manage_settings)
):
    service = PaymentAccountService(db)
    service.delete_account(account_id, auth_context.organization_id)


# ===== PAGOS =====

@router.post("/", response_model=PaymentOut, status_code=status.HTTP_201_CREATED)
def create_payment(
    payment_data: PaymentCreate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(_manage_payments)
):
    """
    Registrar pago de una factura

    - No se aceptan pagos en facturas anuladas ni por encima del saldo pendiente
    - Sin payment_account_id se usa la cuenta por defecto
    - Si la organización no tiene cuentas responde 409 con redirect_url
    """
    service = PaymentService(db)
    return service.create_payment(payment_data, auth_context.organization_id, auth_context.user_id)


@router.get("/", response_model=PaymentList)
def list_payments(
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    invoice_id: Optional[UUID] = Query(None, description="Filtrar por factura"),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(_manage_payments)
):
    service = PaymentService(db)
    return service.list_payments(auth_context.organization_id, limit, offset, invoice_id, start_date, end_date)


@router.get("/{payment_id}", response_model=PaymentOut)
def get_payment(
    payment_id: UUID = Path(..., description="ID del pago"),
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(_manage_payments)
):
    service = PaymentService(db)
    return service.get_payment(payment_id, auth_context.organization_id)


@router.patch("/{payment_id}", response_model=PaymentOut)
def update_payment(
    payment_data: PaymentUpdate,
    payment_id: UUID = Path(..., description="ID del pago"),
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(_manage_payments)
):
    service = PaymentService(db)
    return service.update_payment(payment_id, payment_data, auth_context.organization_id)


@router.delete("/{payment_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_payment(
    payment_id: UUID = Path(..., description="ID del pago"),
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(_manage_payments)
):
    service = PaymentService(db)
    service.delete_payment(payment_id, auth_context.organization_id)
