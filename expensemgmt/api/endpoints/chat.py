from typing import Annotated, Optional

from fastapi import APIRouter, Depends
from langchain_core.language_models import BaseChatModel

from expensemgmt.ai_feature.client import get_chat_model
from expensemgmt.ai_feature.service import ChatService
from expensemgmt.core import schemas
from expensemgmt.core.database import get_gateway
from expensemgmt.core.gateway import ExpenseGateway

router = APIRouter(prefix="/chat", tags=["Chat"])

gateway_dep = Annotated[ExpenseGateway, Depends(get_gateway)]
model_dep = Annotated[Optional[BaseChatModel], Depends(get_chat_model)]


def get_chat_service(gateway: gateway_dep, model: model_dep) -> ChatService:
    return ChatService(gateway, model)


@router.post("", response_model=schemas.ChatResponse)
async def send_message(
    request: schemas.ChatRequest,
    chat_service: Annotated[ChatService, Depends(get_chat_service)],
):
    """
    Send a message to the assistant. The caller keeps the conversation and
    passes prior turns in `history`.
    """
    return await chat_service.send_message(request)


@router.get("/status", response_model=schemas.ChatStatusResponse)
async def get_status(model: model_dep):
    return schemas.ChatStatusResponse(genai_enabled=model is not None)
