"""
Azure Key Client - Static API Key Strategy

Concrete GenerationGateway that authenticates to Azure OpenAI with a static
key and addresses a single deployment bound at construction time.
"""

from typing import Any, Dict, Optional

from loguru import logger
from openai import AsyncAzureOpenAI

from consultologist.clients.llm_client import BaseGenerationClient
from consultologist.core import constants


# =============================================================================
# STAGE 1: AZURE KEY CLIENT IMPLEMENTATION
# =============================================================================


class AzureKeyClient(BaseGenerationClient):
    """
    Azure OpenAI client using a static API key.

    What it does:
        Sends chat completions to one Azure OpenAI deployment, authenticated
        with the `api-key` header.

    Required Settings:
        AZURE_OPENAI_ENDPOINT, AZURE_OPENAI_DEPLOYMENT_NAME,
        AZURE_OPENAI_API_VERSION, OPENAI_API_KEY

    Example:
        >>> client = AzureKeyClient(
        ...     endpoint="https://contoso.openai.azure.com/",
        ...     deployment_name="gpt-4o",
        ...     api_version="2024-10-21",
        ...     api_key="...",
        ... )
        >>> text = await client.generate(prompt, params)
    """

    def __init__(
        self,
        endpoint: Optional[str],
        deployment_name: Optional[str],
        api_version: Optional[str],
        api_key: Optional[str],
        timeout_seconds: float = 60.0,
        client: Optional[Any] = None,
    ):
        super().__init__(
            endpoint=endpoint,
            deployment_name=deployment_name,
            api_version=api_version,
            timeout_seconds=timeout_seconds,
            client=client,
        )
        self._api_key = api_key

        logger.info(f"AzureKeyClient initialized | Deployment: {self.model_name}")

    def _required_settings(self) -> Dict[str, Optional[str]]:
        return {
            constants.ENV_AZURE_ENDPOINT: self._endpoint,
            constants.ENV_AZURE_DEPLOYMENT: self._deployment_name,
            constants.ENV_AZURE_API_VERSION: self._api_version,
            constants.ENV_API_KEY: self._api_key,
        }

    def _create_client(self) -> AsyncAzureOpenAI:
        # Deployment is bound into the base URL. Single attempt per call.
        return AsyncAzureOpenAI(
            azure_endpoint=self._endpoint,
            api_key=self._api_key,
            api_version=self._api_version,
            azure_deployment=self._deployment_name,
            timeout=self._timeout_seconds,
            max_retries=0,
        )

    @property
    def provider_name(self) -> str:
        return constants.PROVIDER_LABELS["api_key"]
