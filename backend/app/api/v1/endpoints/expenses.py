"""
General expense endpoints.

Office and vehicle expenses that do not belong to a trip ledger. Vehicle
expenses count towards the vehicle's expense total and monthly finance.
"""

from typing import Optional, List
from fastapi import APIRouter, Depends, HTTPException, Request, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from backend.app.db.session import get_db
from backend.app.models.expense import Expense
from backend.app.models.vehicle import Vehicle
from backend.app.models.activity_log import ActivityCategory
from backend.app.schemas.misc import ExpenseCreate, ExpenseUpdate, ExpenseResponse
from backend.app.core.guards import require_admin
from backend.app.core.timeutils import utcnow, as_naive_utc
from backend.app.services.activity_logger import ActivityLogger, ActivityAction

router = APIRouter(prefix="/expenses", tags=["Expenses"])


async def get_expense_or_404(db: AsyncSession, expense_id: int) -> Expense:
    result = await db.execute(select(Expense).where(Expense.id == expense_id))
    expense = result.scalar_one_or_none()
    if not expense:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Expense not found"
        )
    return expense


async def ensure_vehicle(db: AsyncSession, vehicle_id: Optional[int]) -> None:
    if vehicle_id is not None and not await db.get(Vehicle, vehicle_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Vehicle not found"
        )


@router.post("/create", response_model=ExpenseResponse, status_code=status.HTTP_201_CREATED)
async def create_expense(
    payload: ExpenseCreate,
    request: Request,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    await ensure_vehicle(db, payload.vehicle_id)
    expense = Expense(
        amount=payload.amount,
        type=payload.type,
        notes=payload.notes,
        paid_at=as_naive_utc(payload.paid_at) or utcnow(),
        vehicle_id=payload.vehicle_id,
        created_by=admin["user_id"],
    )
    db.add(expense)
    await db.commit()
    await db.refresh(expense)

    await ActivityLogger.record(
        db, admin["user_id"], ActivityAction.EXPENSE_ADDED, ActivityCategory.FINANCIAL,
        f"{expense.type} expense of {expense.amount} recorded",
        details={"amount": expense.amount, "expense_id": expense.id},
        related_vehicle_id=expense.vehicle_id, request=request,
    )
    return ExpenseResponse.model_validate(expense)


@router.put("/edit/{expense_id}", response_model=ExpenseResponse)
async def edit_expense(
    expense_id: int,
    payload: ExpenseUpdate,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    expense = await get_expense_or_404(db, expense_id)
    changes = payload.model_dump(exclude_unset=True)
    if "vehicle_id" in changes:
        await ensure_vehicle(db, changes["vehicle_id"])
    if "paid_at" in changes:
        changes["paid_at"] = as_naive_utc(changes["paid_at"]) or expense.paid_at
    for field, value in changes.items():
        setattr(expense, field, value)
    await db.commit()
    await db.refresh(expense)
    return ExpenseResponse.model_validate(expense)


@router.get("/getAll", response_model=List[ExpenseResponse])
async def list_expenses(
    vehicle_id: Optional[int] = Query(None),
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    query = select(Expense)
    if vehicle_id is not None:
        query = query.where(Expense.vehicle_id == vehicle_id)
    result = await db.execute(query.order_by(Expense.paid_at.desc(), Expense.id.desc()))
    return [ExpenseResponse.model_validate(e) for e in result.scalars().all()]


@router.delete("/{expense_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_expense(
    expense_id: int,
    request: Request,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    expense = await get_expense_or_404(db, expense_id)
    amount, vehicle_id = expense.amount, expense.vehicle_id
    await db.delete(expense)
    await db.commit()

    await ActivityLogger.record(
        db, admin["user_id"], ActivityAction.EXPENSE_DELETED, ActivityCategory.FINANCIAL,
        f"Expense {expense_id} of {amount} deleted",
        details={"amount": amount}, related_vehicle_id=vehicle_id, request=request,
    )
