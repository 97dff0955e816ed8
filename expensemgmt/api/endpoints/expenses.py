from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from expensemgmt.core import schemas
from expensemgmt.core.database import get_gateway
from expensemgmt.core.gateway import ExpenseGateway
from expensemgmt.core.security import validate_manager_role

router = APIRouter(prefix="/expenses", tags=["Expenses"])

gateway_dep = Annotated[ExpenseGateway, Depends(get_gateway)]
reviewer_dep = Annotated[schemas.User, Depends(validate_manager_role)]


def _outcome(ok: bool) -> schemas.ApiResponse[bool]:
    if ok:
        return schemas.ApiResponse[bool](success=True, data=True)
    return schemas.ApiResponse[bool](success=False, data=False, error="Expense not found")


@router.get("", response_model=schemas.ApiResponse[List[schemas.Expense]])
async def list_expenses(
    gateway: gateway_dep,
    filter: Optional[str] = None,
    status: Optional[schemas.ExpenseStatusName] = None,
):
    """
    List expenses, newest first. `filter` matches description, user or
    category (case-insensitive); `status` is one of the four status names.
    """
    expenses = await gateway.list_expenses(filter, status)
    return schemas.ApiResponse[List[schemas.Expense]](success=True, data=expenses)


# Fixed paths go before /{expense_id} so they are not parsed as ids
@router.get("/pending", response_model=schemas.ApiResponse[List[schemas.Expense]])
async def list_pending_approvals(gateway: gateway_dep):
    """Submitted expenses waiting for review, oldest first."""
    expenses = await gateway.list_pending_approvals()
    return schemas.ApiResponse[List[schemas.Expense]](success=True, data=expenses)


@router.get("/stats", response_model=schemas.ApiResponse[schemas.DashboardStats])
async def get_dashboard_stats(gateway: gateway_dep):
    stats = await gateway.get_dashboard_stats()
    return schemas.ApiResponse[schemas.DashboardStats](success=True, data=stats)


@router.get("/{expense_id}", response_model=schemas.ApiResponse[schemas.Expense])
async def get_expense(expense_id: int, gateway: gateway_dep):
    expense = await gateway.get_expense(expense_id)

    if expense is None:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content=schemas.ApiResponse(success=False, error="Expense not found").model_dump(),
        )
    return schemas.ApiResponse[schemas.Expense](success=True, data=expense)


@router.post(
    "",
    response_model=schemas.ApiResponse[schemas.Expense],
    status_code=status.HTTP_201_CREATED,
)
async def create_expense(expense: schemas.ExpenseCreate, gateway: gateway_dep):
    """Create a Draft expense; `amount` is in major units (e.g. pounds)."""
    created = await gateway.create_expense(expense)
    return schemas.ApiResponse[schemas.Expense](success=True, data=created)


@router.post("/{expense_id}/submit", response_model=schemas.ApiResponse[bool])
async def submit_expense(expense_id: int, gateway: gateway_dep):
    return _outcome(await gateway.submit_expense(expense_id))


@router.post("/{expense_id}/approve", response_model=schemas.ApiResponse[bool])
async def approve_expense(expense_id: int, reviewer: reviewer_dep, gateway: gateway_dep):
    """Approve as the authenticated manager."""
    return _outcome(await gateway.approve_expense(expense_id, reviewer.id))


@router.post("/{expense_id}/reject", response_model=schemas.ApiResponse[bool])
async def reject_expense(expense_id: int, reviewer: reviewer_dep, gateway: gateway_dep):
    """Reject as the authenticated manager."""
    return _outcome(await gateway.reject_expense(expense_id, reviewer.id))
