"""
Servicios de cuentas de cobro y pagos

current_balance de una cuenta solo cambia con un UPDATE que suma el delta en
la base de datos, igual que el contador de las secuencias fiscales. El estado
de la factura pasa a pagada cuando los pagos cubren el total.
"""
import logging
from datetime import date
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.common.totals import money
from app.modules.invoices.models import Invoice, InvoiceStatus
from app.modules.payments.models import Payment, PaymentAccount
from app.modules.payments.schemas import (
    PaymentAccountCreate, PaymentAccountUpdate, PaymentAccountValidation,
    PaymentCreate, PaymentUpdate, PaymentList, PaymentOut
)

logger = logging.getLogger(__name__)

NO_ACCOUNTS_MESSAGE = "Debe configurar al menos una cuenta de cobro antes de registrar pagos"


def adjust_balance(db: Session, account_id: UUID, delta: Decimal):
    """Suma delta al saldo de la cuenta en una sola sentencia. El llamador hace commit."""
    if account_id is None or delta == 0:
        return
    db.execute(
        update(PaymentAccount)
        .where(PaymentAccount.id == account_id)
        .values(current_balance=PaymentAccount.current_balance + delta)
        .execution_options(synchronize_session=False)
    )


class PaymentAccountService:
    """Cuentas donde la organización recibe los cobros"""

    def __init__(self, db: Session):
        self.db = db

    def _clear_default(self, organization_id: UUID):
        self.db.execute(
            update(PaymentAccount)
            .where(
                PaymentAccount.organization_id == organization_id,
                PaymentAccount.is_default == True
            )
            .values(is_default=False)
            .execution_options(synchronize_session=False)
        )

    def _commit(self, name: str):
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.info(f"Payment account conflict for {name}: {e.orig}")
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Ya existe una cuenta de cobro llamada {name}"
            )

    def create_account(self, account_data: PaymentAccountCreate, organization_id: UUID, user_id: UUID) -> PaymentAccount:
        """La primera cuenta de la organización queda como cuenta por defecto"""
        existing = self.db.query(func.count(PaymentAccount.id)).filter(
            PaymentAccount.organization_id == organization_id
        ).scalar()
        is_default = account_data.is_default or existing == 0
        if is_default:
            self._clear_default(organization_id)

        data = account_data.model_dump(exclude={"is_default"})
        account = PaymentAccount(
            **data,
            current_balance=account_data.initial_balance,
            is_default=is_default,
            is_active=True,
            organization_id=organization_id,
            created_by=user_id
        )
        self.db.add(account)
        self._commit(account_data.name)
        self.db.refresh(account)
        logger.info(f"Payment account {account.id} created in organization {organization_id}")
        return account

    def list_accounts(self, organization_id: UUID, include_inactive: bool = False) -> List[PaymentAccount]:
        query = self.db.query(PaymentAccount).filter(PaymentAccount.organization_id == organization_id)
        if not include_inactive:
            query = query.filter(PaymentAccount.is_active == True)
        return query.order_by(PaymentAccount.is_default.desc(), PaymentAccount.name).all()

    def get_account(self, account_id: UUID, organization_id: UUID) -> PaymentAccount:
        account = self.db.query(PaymentAccount).filter(
            PaymentAccount.id == account_id,
            PaymentAccount.organization_id == organization_id
        ).first()
        if not account:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Cuenta de cobro no encontrada")
        return account

    def get_default(self, organization_id: UUID) -> Optional[PaymentAccount]:
        return self.db.query(PaymentAccount).filter(
            PaymentAccount.organization_id == organization_id,
            PaymentAccount.is_default == True,
            PaymentAccount.is_active == True
        ).first()

    def update_account(
        self, account_id: UUID, account_data: PaymentAccountUpdate, organization_id: UUID
    ) -> PaymentAccount:
        account = self.get_account(account_id, organization_id)
        for field, value in account_data.model_dump(exclude_unset=True).items():
            if value is None and field in ("name", "account_type", "is_active"):
                continue
            setattr(account, field, value)

        # Una cuenta inactiva no puede ser la cuenta por defecto
        if not account.is_active:
            account.is_default = False

        self._commit(account.name)
        self.db.refresh(account)
        return account

    def set_default(self, account_id: UUID, organization_id: UUID) -> PaymentAccount:
        account = self.get_account(account_id, organization_id)
        if not account.is_active:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Solo una cuenta activa puede ser la cuenta por defecto"
            )
        self._clear_default(organization_id)
        account.is_default = True
        self.db.commit()
        self.db.refresh(account)
        return account

    def delete_account(self, account_id: UUID, organization_id: UUID):
        account = self.get_account(account_id, organization_id)
        in_use = self.db.query(Payment.id).filter(Payment.payment_account_id == account.id).first()
        if in_use:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="La cuenta tiene pagos registrados; desactívela en lugar de eliminarla"
            )
        self.db.delete(account)
        self.db.commit()
        logger.info(f"Payment account {account_id} deleted from organization {organization_id}")

    def validate_payment_accounts(self, organization_id: UUID) -> PaymentAccountValidation:
        """Verifica que exista al menos una cuenta activa para registrar cobros"""
        count = self.db.query(func.count(PaymentAccount.id)).filter(
            PaymentAccount.organization_id == organization_id,
            PaymentAccount.is_active == True
        ).scalar()
        if count == 0:
            return PaymentAccountValidation(
                is_valid=False,
                message=NO_ACCOUNTS_MESSAGE,
                redirect_url=settings.PAYMENT_ACCOUNTS_CONFIG_URL,
                accounts_count=0
            )
        return PaymentAccountValidation(
            is_valid=True,
            message=f"{count} cuenta(s) de cobro disponibles",
            accounts_count=count
        )


class PaymentService:
    """Pagos recibidos por factura"""

    def __init__(self, db: Session):
        self.db = db
        self.accounts = PaymentAccountService(db)

    def _lock_invoice(self, invoice_id: UUID, organization_id: UUID) -> Invoice:
        invoice = self.db.query(Invoice).filter(
            Invoice.id == invoice_id,
            Invoice.organization_id == organization_id
        ).with_for_update().first()
        if not invoice:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Factura no encontrada")
        return invoice

    def _resolve_account(self, organization_id: UUID, account_id: Optional[UUID]) -> PaymentAccount:
        if account_id:
            account = self.accounts.get_account(account_id, organization_id)
            if not account.is_active:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="La cuenta de cobro está inactiva"
                )
            return account

        account = self.accounts.get_default(organization_id)
        if account:
            return account

        validation = self.accounts.validate_payment_accounts(organization_id)
        if not validation.is_valid:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail={"message": validation.message, "redirect_url": validation.redirect_url}
            )
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No hay cuenta de cobro por defecto; indique payment_account_id"
        )

    def create_payment(self, payment_data: PaymentCreate, organization_id: UUID, user_id: UUID) -> Payment:
        """Registrar pago de factura"""
        invoice = self._lock_invoice(payment_data.invoice_id, organization_id)

        if invoice.status == InvoiceStatus.VOID:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="No se pueden registrar pagos en facturas anuladas"
            )
        balance_due = invoice.balance_due
        if payment_data.amount > balance_due:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"El pago ({payment_data.amount}) excede el saldo pendiente ({balance_due})"
            )

        account = self._resolve_account(organization_id, payment_data.payment_account_id)

        payment = Payment(
            organization_id=organization_id,
            payment_account_id=account.id,
            amount=payment_data.amount,
            method=payment_data.method,
            payment_date=payment_data.payment_date,
            reference=payment_data.reference,
            notes=payment_data.notes,
            created_by=user_id
        )
        invoice.payments.append(payment)
        adjust_balance(self.db, account.id, payment_data.amount)

        if invoice.balance_due <= 0:
            invoice.status = InvoiceStatus.PAID

        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            logger.exception(f"Error registering payment for invoice {invoice.id}")
            raise
        self.db.refresh(payment)
        logger.info(f"Payment {payment.id} of {payment.amount} registered for invoice {invoice.fiscal_number}")
        return payment

    def get_payment(self, payment_id: UUID, organization_id: UUID) -> Payment:
        payment = self.db.query(Payment).filter(
            Payment.id == payment_id,
            Payment.organization_id == organization_id
        ).first()
        if not payment:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Pago no encontrado")
        return payment

    def list_payments(
        self,
        organization_id: UUID,
        limit: int = 100,
        offset: int = 0,
        invoice_id: Optional[UUID] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None
    ) -> PaymentList:
        query = self.db.query(Payment).filter(Payment.organization_id == organization_id)
        if invoice_id:
            query = query.filter(Payment.invoice_id == invoice_id)
        if start_date:
            query = query.filter(Payment.payment_date >= start_date)
        if end_date:
            query = query.filter(Payment.payment_date <= end_date)

        total = query.count()
        total_amount = query.with_entities(func.coalesce(func.sum(Payment.amount), 0)).scalar()
        payments = query.order_by(Payment.payment_date.desc(), Payment.created_at.desc()).offset(offset).limit(limit).all()
        return PaymentList(
            items=[PaymentOut.model_validate(p) for p in payments],
            total=total,
            total_amount=money(Decimal(str(total_amount))),
            limit=limit,
            offset=offset
        )

    def update_payment(
        self, payment_id: UUID, payment_data: PaymentUpdate, organization_id: UUID
    ) -> Payment:
        payment = self.get_payment(payment_id, organization_id)
        invoice = self._lock_invoice(payment.invoice_id, organization_id)
        changes = payment_data.model_dump(exclude_unset=True)

        new_amount = changes.pop("amount", None)
        if new_amount is not None and new_amount != payment.amount:
            delta = new_amount - payment.amount
            if delta > invoice.balance_due:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail=f"El nuevo monto excede el saldo pendiente ({invoice.balance_due})"
                )
            payment.amount = new_amount
            adjust_balance(self.db, payment.payment_account_id, delta)
            self._sync_status(invoice)

        for field, value in changes.items():
            if value is None and field in ("method", "payment_date"):
                continue
            setattr(payment, field, value)

        self.db.commit()
        self.db.refresh(payment)
        return payment

    def delete_payment(self, payment_id: UUID, organization_id: UUID):
        """Eliminar pago: revierte el saldo de la cuenta"""
        payment = self.get_payment(payment_id, organization_id)
        invoice = self._lock_invoice(payment.invoice_id, organization_id)

        adjust_balance(self.db, payment.payment_account_id, -payment.amount)
        invoice.payments.remove(payment)
        self._sync_status(invoice)

        self.db.commit()
        logger.info(f"Payment {payment_id} removed from invoice {invoice.fiscal_number}")

    @staticmethod
    def _sync_status(invoice: Invoice):
        if invoice.status == InvoiceStatus.VOID:
            return
        if invoice.balance_due <= 0:
            invoice.status = InvoiceStatus.PAID
        elif invoice.status == InvoiceStatus.PAID:
            invoice.status = InvoiceStatus.ISSUED
