import logging
from functools import lru_cache
from typing import Optional

from azure.identity import (
    DefaultAzureCredential,
    ManagedIdentityCredential,
    get_bearer_token_provider,
)
from langchain_openai import AzureChatOpenAI

from expensemgmt.core.config import settings

logger = logging.getLogger(__name__)

COGNITIVE_SERVICES_SCOPE = "https://cognitiveservices.azure.com/.default"


def build_credential():
    """Pick the identity used to fetch model-endpoint tokens."""
    if settings.MANAGED_IDENTITY_CLIENT_ID:
        logger.info(
            f"Using ManagedIdentityCredential with client ID: {settings.MANAGED_IDENTITY_CLIENT_ID}"
        )
        return ManagedIdentityCredential(client_id=settings.MANAGED_IDENTITY_CLIENT_ID)

    logger.info("Using DefaultAzureCredential")
    return DefaultAzureCredential()


# One client per process; None means chat is disabled
@lru_cache
def get_chat_model() -> Optional[AzureChatOpenAI]:
    if not settings.AZURE_OPENAI_ENDPOINT:
        logger.info("AZURE_OPENAI_ENDPOINT is not set, chat is disabled")
        return None

    token_provider = get_bearer_token_provider(
        build_credential(), COGNITIVE_SERVICES_SCOPE
    )
    return AzureChatOpenAI(
        azure_endpoint=settings.AZURE_OPENAI_ENDPOINT,
        azure_deployment=settings.AZURE_OPENAI_DEPLOYMENT,
        api_version=settings.AZURE_OPENAI_API_VERSION,
        azure_ad_token_provider=token_provider,
        temperature=settings.CHAT_TEMPERATURE,
        max_tokens=settings.CHAT_MAX_TOKENS,
        timeout=settings.CHAT_TIMEOUT,
    )
