import logging
from datetime import date
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from app.common.totals import money
from app.modules.expenses.models import Expense
from app.modules.expenses.schemas import ExpenseCreate, ExpenseUpdate, ExpenseList, ExpenseOut

logger = logging.getLogger(__name__)

# Campos que no admiten null en una actualización
REQUIRED_FIELDS = ("description", "amount", "category", "expense_date")


class ExpenseService:
    """Servicio de gastos"""

    def __init__(self, db: Session):
        self.db = db

    def create_expense(self, expense_data: ExpenseCreate, organization_id: UUID, user_id: UUID) -> Expense:
        expense = Expense(
            **expense_data.model_dump(),
            organization_id=organization_id,
            created_by=user_id
        )
        self.db.add(expense)
        self.db.commit()
        self.db.refresh(expense)
        logger.info(f"Expense {expense.id} of {expense.amount} registered in organization {organization_id}")
        return expense

    def get_expense(self, expense_id: UUID, organization_id: UUID) -> Expense:
        expense = self.db.query(Expense).filter(
            Expense.id == expense_id,
            Expense.organization_id == organization_id
        ).first()
        if not expense:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Gasto no encontrado")
        return expense

    def list_expenses(
        self,
        organization_id: UUID,
        limit: int = 100,
        offset: int = 0,
        category: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        search: Optional[str] = None
    ) -> ExpenseList:
        """Listar gastos con filtros"""
        if start_date and end_date and end_date < start_date:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="La fecha final no puede ser anterior a la fecha inicial"
            )

        query = self.db.query(Expense).filter(Expense.organization_id == organization_id)
        if category:
            query = query.filter(Expense.category == category)
        if start_date:
            query = query.filter(Expense.expense_date >= start_date)
        if end_date:
            query = query.filter(Expense.expense_date <= end_date)
        if search:
            term = f"%{search}%"
            query = query.filter(or_(Expense.description.ilike(term), Expense.notes.ilike(term)))

        total = query.count()
        total_amount = query.with_entities(func.coalesce(func.sum(Expense.amount), 0)).scalar()
        expenses = query.order_by(
            Expense.expense_date.desc(), Expense.created_at.desc()
        ).offset(offset).limit(limit).all()

        return ExpenseList(
            items=[ExpenseOut.model_validate(e) for e in expenses],
            total=total,
            total_amount=money(Decimal(str(total_amount))),
            limit=limit,
            offset=offset
        )

    def update_expense(
        self, expense_id: UUID, expense_data: ExpenseUpdate, organization_id: UUID
    ) -> Expense:
        expense = self.get_expense(expense_id, organization_id)
        for field, value in expense_data.model_dump(exclude_unset=True).items():
            if value is None and field in REQUIRED_FIELDS:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail=f"El campo {field} es obligatorio"
                )
            setattr(expense, field, value)
        self.db.commit()
        self.db.refresh(expense)
        return expense

    def delete_expense(self, expense_id: UUID, organization_id: UUID):
        expense = self.get_expense(expense_id, organization_id)
        self.db.delete(expense)
        self.db.commit()
        logger.info(f"Expense {expense_id} deleted from organization {organization_id}")

    def get_categories(self, organization_id: UUID) -> List[str]:
        rows = self.db.query(Expense.category).filter(
            Expense.organization_id == organization_id
        ).distinct().order_by(Expense.category).all()
        return [category for (category,) in rows]
