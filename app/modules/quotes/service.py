import logging
from typing import Optional
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from app.core.config import settings
from app.common.totals import calculate_line_total, calculate_totals
from app.modules.fiscal import registry
from app.modules.fiscal.models import DocumentCategory
from app.modules.fiscal.service import SequenceManager
from app.modules.fiscal.validator import SequenceValidator
from app.modules.invoices.models import Invoice, InvoiceStatus
from app.modules.invoices.schemas import DocumentLineCreate, InvoiceCreate
from app.modules.invoices.service import InvoiceService, resolve_customer, resolve_lines
from app.modules.quotes.models import Quote, QuoteLineItem, QuoteStatus
from app.modules.quotes.schemas import QuoteConvert, QuoteCreate, QuoteList, QuoteOut, QuoteStatusUpdate

logger = logging.getLogger(__name__)

QUOTE_TRANSITIONS = {
    QuoteStatus.DRAFT: {QuoteStatus.SENT, QuoteStatus.ACCEPTED, QuoteStatus.REJECTED, QuoteStatus.EXPIRED},
    QuoteStatus.SENT: {QuoteStatus.ACCEPTED, QuoteStatus.REJECTED, QuoteStatus.EXPIRED},
    QuoteStatus.ACCEPTED: set(),
    QuoteStatus.REJECTED: set(),
    QuoteStatus.EXPIRED: set(),
}


class QuoteService:
    """Servicio de cotizaciones"""

    def __init__(self, db: Session):
        self.db = db

    def create_quote(self, quote_data: QuoteCreate, organization_id: UUID, user_id: UUID) -> Quote:
        document_type = registry.get_document_type(self.db, organization_id, quote_data.document_type_id)
        if document_type.category != DocumentCategory.QUOTE.value:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="El tipo de documento no corresponde a una cotización"
            )
        customer = resolve_customer(self.db, organization_id, quote_data, document_type)
        lines = resolve_lines(self.db, organization_id, quote_data.items)

        SequenceValidator(self.db, organization_id).require_valid(document_type.id)

        totals = calculate_totals(lines, settings.DEFAULT_TAX_RATE, quote_data.apply_tax)
        allocation = SequenceManager(self.db).allocate(organization_id, document_type.id)

        quote = Quote(
            organization_id=organization_id,
            document_type_id=document_type.id,
            fiscal_sequence_id=allocation.sequence_id,
            fiscal_number=allocation.formatted_number,
            client_id=customer.client_id,
            customer_name=customer.name,
            customer_tax_id=customer.tax_id,
            customer_email=customer.email,
            status=QuoteStatus.DRAFT,
            issue_date=quote_data.issue_date,
            valid_until=quote_data.valid_until,
            notes=quote_data.notes,
            currency=settings.DEFAULT_CURRENCY,
            subtotal=totals.subtotal,
            tax_amount=totals.tax_amount,
            total=totals.total,
            created_by=user_id,
            line_items=[
                QuoteLineItem(
                    product_id=line.product_id,
                    description=line.description,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    line_total=calculate_line_total(line.quantity, line.unit_price)
                )
                for line in lines
            ]
        )
        self.db.add(quote)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.error(f"Quote with number {allocation.formatted_number} could not be saved: {e}")
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"El número {allocation.formatted_number} ya fue usado. Revise la secuencia."
            )

        self.db.refresh(quote)
        logger.info(f"Quote {quote.id} created with number {quote.fiscal_number}")
        return quote

    def get_quote(self, quote_id: UUID, organization_id: UUID) -> Quote:
        quote = self.db.query(Quote).options(
            selectinload(Quote.line_items)
        ).filter(
            Quote.id == quote_id,
            Quote.organization_id == organization_id
        ).first()
        if not quote:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Cotización no encontrada")
        return quote

    def list_quotes(
        self,
        organization_id: UUID,
        limit: int = 100,
        offset: int = 0,
        status_filter: Optional[QuoteStatus] = None,
        client_id: Optional[UUID] = None
    ) -> QuoteList:
        query = self.db.query(Quote).filter(Quote.organization_id == organization_id)
        if status_filter:
            query = query.filter(Quote.status == status_filter)
        if client_id:
            query = query.filter(Quote.client_id == client_id)
        total = query.count()
        quotes = query.order_by(Quote.created_at.desc()).offset(offset).limit(limit).all()
        return QuoteList(
            quotes=[QuoteOut.model_validate(q) for q in quotes],
            total=total,
            limit=limit,
            offset=offset
        )

    def update_status(self, quote_id: UUID, status_data: QuoteStatusUpdate, organization_id: UUID) -> Quote:
        """
        Cambiar el estado de una cotización.

        draft -> sent -> accepted | rejected | expired. Los estados finales y
        las cotizaciones ya convertidas no cambian.
        """
        quote = self.get_quote(quote_id, organization_id)
        target = status_data.status

        if quote.converted_invoice_id is not None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="La cotización ya fue convertida en factura"
            )
        if quote.status == target:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"La cotización ya está en estado {target.value}"
            )
        if target not in QUOTE_TRANSITIONS[quote.status]:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"No se puede pasar de {quote.status.value} a {target.value}"
            )

        quote.status = target
        self.db.commit()
        self.db.refresh(quote)
        return quote

    def convert_to_invoice(
        self, quote_id: UUID, convert_data: QuoteConvert, organization_id: UUID, user_id: UUID
    ) -> Invoice:
        """
        Generar una factura con los datos de la cotización.

        La factura pasa por la validación y asignación de su propia secuencia
        fiscal. Si otra petición convirtió la cotización mientras tanto, la
        factura recién creada se anula y se responde 409.
        """
        quote = self.get_quote(quote_id, organization_id)
        if quote.converted_invoice_id is not None:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="La cotización ya fue convertida en factura"
            )

        notes = f"Convertido desde cotización {quote.fiscal_number}"
        if quote.notes:
            notes = f"{notes}\n{quote.notes}"

        invoice_data = InvoiceCreate(
            document_type_id=convert_data.document_type_id,
            client_id=quote.client_id,
            customer_name=quote.customer_name,
            customer_tax_id=quote.customer_tax_id,
            customer_email=quote.customer_email,
            issue_date=convert_data.issue_date,
            due_date=convert_data.due_date,
            notes=notes,
            apply_tax=quote.tax_amount > 0,
            items=[
                DocumentLineCreate(
                    product_id=item.product_id,
                    description=item.description,
                    quantity=item.quantity,
                    unit_price=item.unit_price
                )
                for item in quote.line_items
            ]
        )
        invoice = InvoiceService(self.db).create_invoice(invoice_data, organization_id, user_id)

        result = self.db.execute(
            update(Quote)
            .where(Quote.id == quote_id, Quote.converted_invoice_id.is_(None))
            .values(converted_invoice_id=invoice.id, status=QuoteStatus.ACCEPTED)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            self.db.rollback()
            invoice.status = InvoiceStatus.VOID
            invoice.notes = f"{invoice.notes}\n[ANULADA] Cotización {quote.fiscal_number} convertida por otra solicitud"
            self.db.commit()
            logger.warning(f"Quote {quote_id} was converted concurrently; invoice {invoice.fiscal_number} voided")
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="La cotización ya fue convertida en factura"
            )
        self.db.commit()
        self.db.refresh(invoice)
        logger.info(f"Quote {quote.fiscal_number} converted to invoice {invoice.fiscal_number}")
        return invoice
