from typing import Annotated, List

from fastapi import APIRouter, Depends

from expensemgmt.core import schemas
from expensemgmt.core.database import get_gateway
from expensemgmt.core.gateway import ExpenseGateway

router = APIRouter(prefix="/statuses", tags=["Statuses"])

gateway_dep = Annotated[ExpenseGateway, Depends(get_gateway)]


@router.get("", response_model=schemas.ApiResponse[List[schemas.ExpenseStatus]])
async def list_statuses(gateway: gateway_dep):
    statuses = await gateway.list_statuses()
    return schemas.ApiResponse[List[schemas.ExpenseStatus]](success=True, data=statuses)
