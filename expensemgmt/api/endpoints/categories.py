from typing import Annotated, List

from fastapi import APIRouter, Depends

from expensemgmt.core import schemas
from expensemgmt.core.database import get_gateway
from expensemgmt.core.gateway import ExpenseGateway

router = APIRouter(prefix="/categories", tags=["Categories"])

gateway_dep = Annotated[ExpenseGateway, Depends(get_gateway)]


@router.get("", response_model=schemas.ApiResponse[List[schemas.ExpenseCategory]])
async def list_categories(gateway: gateway_dep):
    """Active categories in name order."""
    categories = await gateway.list_categories()
    return schemas.ApiResponse[List[schemas.ExpenseCategory]](success=True, data=categories)
