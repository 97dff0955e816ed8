from typing import Annotated, List

from fastapi import APIRouter, Depends

from expensemgmt.core import schemas
from expensemgmt.core.database import get_gateway
from expensemgmt.core.gateway import ExpenseGateway

router = APIRouter(prefix="/users", tags=["Users"])

gateway_dep = Annotated[ExpenseGateway, Depends(get_gateway)]


@router.get("", response_model=schemas.ApiResponse[List[schemas.User]])
async def list_users(gateway: gateway_dep):
    """Active users in name order."""
    users = await gateway.list_users()
    return schemas.ApiResponse[List[schemas.User]](success=True, data=users)
