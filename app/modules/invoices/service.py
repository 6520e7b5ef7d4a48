"""
Servicio de facturación

La factura solo se crea si el tipo de comprobante tiene una secuencia fiscal
activa. El número se asigna (y confirma) antes de guardar la factura: si el
guardado falla, el número queda consumido.

resolve_customer y resolve_lines también los usa el servicio de cotizaciones.
"""
import logging
from decimal import Decimal
from typing import List, NamedTuple, Optional
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from app.core.config import settings
from app.common.totals import calculate_line_total, calculate_totals
from app.common.validators import validate_tax_id, format_tax_id
from app.modules.clients.models import IdType
from app.modules.clients.service import ClientService
from app.modules.fiscal import registry
from app.modules.fiscal.models import DocumentCategory
from app.modules.fiscal.service import SequenceManager
from app.modules.fiscal.validator import SequenceValidator
from app.modules.invoices.models import Invoice, InvoiceLineItem, InvoiceStatus
from app.modules.invoices.schemas import (
    DocumentCustomer, DocumentLineCreate, InvoiceCreate, InvoiceList, InvoiceOut, InvoiceStatusUpdate
)
from app.modules.products import service as product_service

logger = logging.getLogger(__name__)

INVOICE_CATEGORIES = (DocumentCategory.INVOICE.value, DocumentCategory.CREDIT_NOTE.value)

# VOID es terminal: el número fiscal anulado no vuelve a usarse
INVOICE_TRANSITIONS = {
    InvoiceStatus.ISSUED: {InvoiceStatus.PAID, InvoiceStatus.VOID},
    InvoiceStatus.PAID: {InvoiceStatus.ISSUED},
    InvoiceStatus.VOID: set(),
}


class ResolvedCustomer(NamedTuple):
    client_id: Optional[UUID]
    name: str
    tax_id: Optional[str]
    email: Optional[str]


class ResolvedLine(NamedTuple):
    product_id: Optional[UUID]
    description: str
    quantity: Decimal
    unit_price: Decimal


def check_customer_tax_id(document_type, customer_tax_id: Optional[str]) -> Optional[str]:
    if customer_tax_id:
        if not validate_tax_id(customer_tax_id):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="RNC o cédula del cliente inválido"
            )
        return format_tax_id(customer_tax_id)
    if document_type.requires_tax_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"El comprobante {document_type.code} requiere RNC o cédula del cliente"
        )
    return None


def resolve_customer(
    db: Session, organization_id: UUID, data: DocumentCustomer, document_type
) -> ResolvedCustomer:
    """
    Datos del cliente que quedan copiados en el documento.
    Los campos enviados en la petición tienen prioridad sobre los del cliente registrado.
    """
    name, tax_id, email = data.customer_name, data.customer_tax_id, data.customer_email
    if data.client_id is not None:
        client = ClientService(db).get_active_client(data.client_id, organization_id)
        name = name or client.name
        if tax_id is None and client.id_type in (IdType.RNC.value, IdType.CEDULA.value):
            tax_id = client.id_number
        email = email or client.email

    return ResolvedCustomer(
        client_id=data.client_id,
        name=name.strip(),
        tax_id=check_customer_tax_id(document_type, tax_id),
        email=email
    )


def resolve_lines(db: Session, organization_id: UUID, items: List[DocumentLineCreate]) -> List[ResolvedLine]:
    """Completa descripción y precio desde el catálogo cuando la línea trae product_id"""
    lines = []
    for item in items:
        description, unit_price = item.description, item.unit_price
        if item.product_id is not None:
            if description is None or unit_price is None:
                product = product_service.get_active_product(db, organization_id, item.product_id)
                description = description or product.name
                unit_price = product.price if unit_price is None else unit_price
            else:
                product_service.get_product_by_id(db, organization_id, item.product_id)
        lines.append(ResolvedLine(item.product_id, description, item.quantity, unit_price))
    return lines


class InvoiceService:
    """Servicio de facturas de venta"""

    def __init__(self, db: Session):
        self.db = db

    def create_invoice(self, invoice_data: InvoiceCreate, organization_id: UUID, user_id: UUID) -> Invoice:
        """Crear factura con número fiscal asignado de forma atómica"""
        document_type = registry.get_document_type(self.db, organization_id, invoice_data.document_type_id)
        if document_type.category not in INVOICE_CATEGORIES:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="El tipo de documento no corresponde a una factura"
            )
        customer = resolve_customer(self.db, organization_id, invoice_data, document_type)
        lines = resolve_lines(self.db, organization_id, invoice_data.items)

        SequenceValidator(self.db, organization_id).require_valid(document_type.id)

        totals = calculate_totals(lines, settings.DEFAULT_TAX_RATE, invoice_data.apply_tax)

        allocation = SequenceManager(self.db).allocate(organization_id, document_type.id)

        invoice = Invoice(
            organization_id=organization_id,
            document_type_id=document_type.id,
            fiscal_sequence_id=allocation.sequence_id,
            fiscal_number=allocation.formatted_number,
            client_id=customer.client_id,
            customer_name=customer.name,
            customer_tax_id=customer.tax_id,
            customer_email=customer.email,
            status=InvoiceStatus.ISSUED,
            issue_date=invoice_data.issue_date,
            due_date=invoice_data.due_date,
            notes=invoice_data.notes,
            currency=settings.DEFAULT_CURRENCY,
            subtotal=totals.subtotal,
            tax_amount=totals.tax_amount,
            total=totals.total,
            created_by=user_id,
            line_items=[
                InvoiceLineItem(
                    product_id=line.product_id,
                    description=line.description,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    line_total=calculate_line_total(line.quantity, line.unit_price)
                )
                for line in lines
            ]
        )
        self.db.add(invoice)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.error(
                f"Invoice with fiscal number {allocation.formatted_number} could not be saved: {e}"
            )
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"El número fiscal {allocation.formatted_number} ya fue usado. Revise la secuencia."
            )
        except Exception:
            self.db.rollback()
            logger.exception(
                f"Error saving invoice; fiscal number {allocation.formatted_number} was consumed"
            )
            raise

        self.db.refresh(invoice)
        logger.info(f"Invoice {invoice.id} created with fiscal number {invoice.fiscal_number}")
        return invoice

    def get_invoice(self, invoice_id: UUID, organization_id: UUID) -> Invoice:
        invoice = self.db.query(Invoice).options(
            selectinload(Invoice.line_items),
            selectinload(Invoice.payments)
        ).filter(
            Invoice.id == invoice_id,
            Invoice.organization_id == organization_id
        ).first()
        if not invoice:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Factura no encontrada")
        return invoice

    def list_invoices(
        self,
        organization_id: UUID,
        limit: int = 100,
        offset: int = 0,
        status_filter: Optional[InvoiceStatus] = None,
        document_type_id: Optional[UUID] = None,
        client_id: Optional[UUID] = None
    ) -> InvoiceList:
        query = self.db.query(Invoice).filter(Invoice.organization_id == organization_id)
        if status_filter:
            query = query.filter(Invoice.status == status_filter)
        if document_type_id:
            query = query.filter(Invoice.document_type_id == document_type_id)
        if client_id:
            query = query.filter(Invoice.client_id == client_id)

        total = query.count()
        invoices = query.options(selectinload(Invoice.payments)).order_by(
            Invoice.created_at.desc()
        ).offset(offset).limit(limit).all()
        return InvoiceList(
            invoices=[InvoiceOut.model_validate(i) for i in invoices],
            total=total,
            limit=limit,
            offset=offset
        )

    def update_status(
        self, invoice_id: UUID, status_data: InvoiceStatusUpdate, organization_id: UUID
    ) -> Invoice:
        """
        Cambiar el estado de una factura.

        - issued -> paid | void
        - paid -> issued
        - void es definitivo
        """
        invoice = self.get_invoice(invoice_id, organization_id)
        target = status_data.status

        if invoice.status == target:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"La factura ya está en estado {target.value}"
            )
        if target not in INVOICE_TRANSITIONS[invoice.status]:
            if invoice.status == InvoiceStatus.PAID and target == InvoiceStatus.VOID:
                detail = "No se pueden anular facturas que ya están pagadas"
            elif invoice.status == InvoiceStatus.VOID:
                detail = "La factura está anulada y no puede cambiar de estado"
            else:
                detail = f"No se puede pasar de {invoice.status.value} a {target.value}"
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)

        if target == InvoiceStatus.VOID:
            if invoice.payments:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="La factura tiene pagos registrados; elimínelos antes de anularla"
                )
            reason = status_data.reason or "Sin motivo"
            invoice.notes = f"{invoice.notes}\n[ANULADA] {reason}" if invoice.notes else f"[ANULADA] {reason}"
        elif target == InvoiceStatus.ISSUED and invoice.payments and invoice.balance_due <= 0:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Los pagos registrados cubren el total de la factura"
            )

        previous = invoice.status
        invoice.status = target
        self.db.commit()
        self.db.refresh(invoice)
        logger.info(f"Invoice {invoice.fiscal_number} changed from {previous.value} to {target.value}")
        return invoice
