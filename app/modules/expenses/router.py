from fastapi import APIRouter, Depends, status, Query, Path
from sqlalchemy.orm import Session
from typing import List, Optional
from uuid import UUID
from datetime import date

from app.database.database import get_db
from app.modules.auth.dependencies import require_permission
from app.modules.auth.permissions import Permission
from app.modules.auth.schemas import AuthContext
from app.modules.expenses.service import ExpenseService
from app.modules.expenses.schemas import ExpenseCreate, ExpenseUpdate, ExpenseOut, ExpenseList

router = APIRouter(prefix="/expenses", tags=["Expenses"])

_manage_expenses = require_permission(Permission.MANAGE_EXPENSES)


@router.post("/", response_model=ExpenseOut, status_code=status.HTTP_201_CREATED)
def create_expense(
    expense_data: ExpenseCreate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(_manage_expenses)
):
    service = ExpenseService(db)
    return service.create_expense(expense_data, auth_context.organization_id, auth_context.user_id)


@router.get("/", response_model=ExpenseList)
def list_expenses(
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    category: Optional[str] = Query(None, description="Filtrar por categoría"),
    start_date: Optional[date] = Query(None, description="Desde (inclusive)"),
    end_date: Optional[date] = Query(None, description="Hasta (inclusive)"),
    search: Optional[str] = Query(None, description="Buscar en descripción y notas"),
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(_manage_expenses)
):
    """
    Listar gastos

    El campo total_amount suma todos los gastos que cumplen los filtros,
    no solo los de la página.
    """
    service = ExpenseService(db)
    return service.list_expenses(
        auth_context.organization_id, limit, offset, category, start_date, end_date, search
    )


@router.get("/categories", response_model=List[str])
def get_expense_categories(
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(_manage_expenses)
):
    service = ExpenseService(db)
    return service.get_categories(auth_context.organization_id)


@router.get("/{expense_id}", response_model=ExpenseOut)
def get_expense(
    expense_id: UUID = Path(..., description="ID del gasto"),
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(_manage_expenses)
):
    service = ExpenseService(db)
    return service.get_expense(expense_id, auth_context.organization_id)


@router.patch("/{expense_id}", response_model=ExpenseOut)
def update_expense(
    expense_data: ExpenseUpdate,
    expense_id: UUID = Path(..., description="ID del gasto"),
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(_manage_expenses)
):
    service = ExpenseService(db)
    return service.update_expense(expense_id, expense_data, auth_context.organization_id)


@router.delete("/{expense_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_expense(
    expense_id: UUID = Path(..., description="ID del gasto"),
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(_manage_expenses)
):
    service = ExpenseService(db)
    service.delete_expense(expense_id, auth_context.organization_id)
