"""
Azure Identity Client - Managed Identity Strategy

Concrete GenerationGateway that obtains bearer tokens from the ambient Azure
credential chain (managed identity, workload identity, developer login) and
names the deployment on every request instead of binding it into the URL.
"""

from typing import Any, Dict, Optional

from azure.identity.aio import DefaultAzureCredential, get_bearer_token_provider
from loguru import logger
from openai import AsyncAzureOpenAI

from consultologist.clients.llm_client import BaseGenerationClient
from consultologist.core import constants


class AzureIdentityClient(BaseGenerationClient):
    """
    Azure OpenAI client authenticated with an Azure AD token.

    What it does:
        Wraps DefaultAzureCredential in a bearer token provider scoped to
        Cognitive Services and hands it to the SDK, which refreshes tokens
        as they expire.

    Required Settings:
        AZURE_OPENAI_ENDPOINT, AZURE_OPENAI_DEPLOYMENT_NAME,
        AZURE_OPENAI_API_VERSION (no key)

    Token acquisition failures surface as TransportError.
    """

    def __init__(
        self,
        endpoint: Optional[str],
        deployment_name: Optional[str],
        api_version: Optional[str],
        token_scope: str = constants.COGNITIVE_SERVICES_SCOPE,
        timeout_seconds: float = 60.0,
        credential: Optional[Any] = None,
        client: Optional[Any] = None,
    ):
        super().__init__(
            endpoint=endpoint,
            deployment_name=deployment_name,
            api_version=api_version,
            timeout_seconds=timeout_seconds,
            client=client,
        )
        self._token_scope = token_scope
        self._credential = credential
        self._owns_credential = credential is None

        logger.info(
            f"AzureIdentityClient initialized | Deployment: {self.model_name} | "
            f"Scope: {token_scope}"
        )

    def _required_settings(self) -> Dict[str, Optional[str]]:
        return {
            constants.ENV_AZURE_ENDPOINT: self._endpoint,
            constants.ENV_AZURE_DEPLOYMENT: self._deployment_name,
            constants.ENV_AZURE_API_VERSION: self._api_version,
        }

    def _create_client(self) -> AsyncAzureOpenAI:
        if self._credential is None:
            self._credential = DefaultAzureCredential()
        token_provider = get_bearer_token_provider(self._credential, self._token_scope)
        return AsyncAzureOpenAI(
            azure_endpoint=self._endpoint,
            api_version=self._api_version,
            azure_ad_token_provider=token_provider,
            timeout=self._timeout_seconds,
            max_retries=0,
        )

    async def aclose(self) -> None:
        """Close the SDK client and the credential this client created."""
        await super().aclose()
        if self._owns_credential and self._credential is not None:
            await self._credential.close()
            self._credential = None

    @property
    def provider_name(self) -> str:
        return constants.PROVIDER_LABELS["managed_identity"]
