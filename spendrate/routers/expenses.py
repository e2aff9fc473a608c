from typing import Dict

from fastapi import APIRouter, Depends, HTTPException, status

from spendrate.core.errors import SpendRateError
from spendrate.core.security import require_trigger_token
from spendrate.models.expense import ManualExpenseCreate
from spendrate.services.daily_spend import add_manual_expense
from spendrate.services.providers import get_store

router = APIRouter()


@router.post("/manual", status_code=status.HTTP_201_CREATED, dependencies=[Depends(require_trigger_token)])
def create_manual_expense(expense: ManualExpenseCreate, store=Depends(get_store)) -> Dict:
    """Add a cash expense to the ledger. Date defaults to today."""
    try:
        entry = add_manual_expense(store, expense.amount, expense.category, expense.expense_date)
    except SpendRateError as e:
        raise HTTPException(status_code=500, detail=f"Failed to save expense: {str(e)}")
    return entry
