"""Conversational tool-calling loop.

Flow per request:
1. Build the transcript: system prompt, prior turns, new user message
2. Ask the model, offering the expense tools
3. If it asks for tools, run them and append the results, then go to 2
4. Stop on a plain answer, an error, or when the round limit is hit
"""

import asyncio
import itertools
import json
import logging
import uuid
from typing import Any, List, Optional

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import (
    AIMessage,
    BaseMessage,
    HumanMessage,
    SystemMessage,
    ToolMessage,
)

from expensemgmt.ai_feature.prompts import (
    DISABLED_MESSAGE,
    SYSTEM_PROMPT,
    UNABLE_TO_COMPLETE_MESSAGE,
)
from expensemgmt.ai_feature.tools import TOOL_DEFINITIONS, ExpenseToolbox
from expensemgmt.core import schemas
from expensemgmt.core.config import settings
from expensemgmt.core.gateway import ExpenseGateway

logger = logging.getLogger(__name__)


def _content_text(content: Any) -> str:
    if isinstance(content, str):
        return content
    # Content blocks: keep the text parts only
    parts = []
    for block in content or []:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text", ""))
    return "".join(parts)


def _fill_missing_call_ids(response: AIMessage) -> None:
    # A tool result must answer a non-empty call id from the assistant turn
    for call in [*response.tool_calls, *response.invalid_tool_calls]:
        if not call.get("id"):
            call["id"] = f"call_{uuid.uuid4().hex}"


class ChatService:
    def __init__(
        self,
        gateway: ExpenseGateway,
        model: Optional[BaseChatModel],
        max_tool_rounds: Optional[int] = None,
        timeout: Optional[float] = None,
    ):
        self.model = model
        self.toolbox = ExpenseToolbox(gateway)
        self.max_tool_rounds = (
            max_tool_rounds if max_tool_rounds is not None else settings.CHAT_MAX_TOOL_ROUNDS
        )
        self.timeout = timeout if timeout is not None else settings.CHAT_TIMEOUT

    @property
    def genai_enabled(self) -> bool:
        return self.model is not None

    @staticmethod
    def build_transcript(request: schemas.ChatRequest) -> List[BaseMessage]:
        messages: List[BaseMessage] = [SystemMessage(content=SYSTEM_PROMPT)]
        for turn in request.history:
            if turn.role == "user":
                messages.append(HumanMessage(content=turn.content))
            else:
                messages.append(AIMessage(content=turn.content))
        messages.append(HumanMessage(content=request.message))
        return messages

    async def send_message(self, request: schemas.ChatRequest) -> schemas.ChatResponse:
        if not self.genai_enabled:
            return schemas.ChatResponse(
                success=True, message=DISABLED_MESSAGE, genai_enabled=False
            )

        messages = self.build_transcript(request)
        try:
            return await self._run(messages)
        except asyncio.TimeoutError:
            logger.error(f"Model did not respond within {self.timeout:g}s")
            return schemas.ChatResponse(
                success=False,
                error=f"The language model did not respond within {self.timeout:g} seconds",
                genai_enabled=True,
            )
        except Exception as error:
            logger.exception(f"Error in chat service: {error}")
            return schemas.ChatResponse(
                success=False, error=str(error) or type(error).__name__, genai_enabled=True
            )

    async def _run(self, messages: List[BaseMessage]) -> schemas.ChatResponse:
        model = self.model.bind_tools(TOOL_DEFINITIONS)

        for tool_round in itertools.count():
            logger.info(f"Model round {tool_round + 1}")
            response = await asyncio.wait_for(model.ainvoke(messages), timeout=self.timeout)

            if not response.tool_calls and not response.invalid_tool_calls:
                return schemas.ChatResponse(
                    success=True,
                    message=_content_text(response.content),
                    genai_enabled=True,
                )

            if tool_round >= self.max_tool_rounds:
                logger.warning(f"Max tool rounds ({self.max_tool_rounds}) reached")
                return schemas.ChatResponse(
                    success=False,
                    message=UNABLE_TO_COMPLETE_MESSAGE,
                    error=f"Exceeded the limit of {self.max_tool_rounds} tool-call rounds",
                    genai_enabled=True,
                )

            _fill_missing_call_ids(response)
            messages.append(response)
            messages.extend(await self._execute_tools(response))

    async def _execute_tools(self, response: AIMessage) -> List[ToolMessage]:
        results = []
        for call in response.tool_calls:
            logger.info(f"Executing tool: {call['name']}")
            content = await self.toolbox.execute(call["name"], call["args"])
            results.append(
                ToolMessage(content=content, tool_call_id=call["id"], name=call["name"])
            )

        # Arguments that were not even valid JSON; let the model try again
        for call in response.invalid_tool_calls:
            name = call.get("name") or "unknown"
            logger.warning(f"Unparseable arguments for tool {name}: {call.get('error')}")
            content = json.dumps(
                {"error": f"Could not parse arguments for {name}: {call.get('error')}"}
            )
            results.append(
                ToolMessage(content=content, tool_call_id=call["id"], name=name)
            )
        return results
