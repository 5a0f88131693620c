"""
Generation Gateway Protocol and Base Client

This module defines the interface the pipeline uses to obtain generated text
and a base class that implements everything the two Azure OpenAI strategies
share: configuration checks, the bounded call, text extraction and error
classification.

Protocol Pattern:
    - GenerationGateway defines the interface
    - BaseGenerationClient provides the common implementation
    - Concrete clients (AzureKeyClient, AzureIdentityClient) supply the SDK
      client and their required settings

Failure Classification:
    missing settings           → ConfigurationError (no network call)
    time bound exceeded        → GenerationTimeoutError
    connection / auth failure  → TransportError
    provider status error      → ProviderError (status and code preserved)
    content filter             → ContentFilteredError
    no text in first choice    → EmptyGenerationError

Each call is a single attempt. Retries, if wanted, belong to the caller.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

import openai
from azure.core.exceptions import ClientAuthenticationError
from loguru import logger

from consultologist.core.exceptions import (
    ConfigurationError,
    ContentFilteredError,
    EmptyGenerationError,
    GenerationError,
    GenerationTimeoutError,
    ProviderError,
    TransportError,
)
from consultologist.core.models import GenerationParameters, PromptPair


# =============================================================================
# STAGE 1: GENERATION GATEWAY PROTOCOL
# =============================================================================


@runtime_checkable
class GenerationGateway(Protocol):
    """
    Protocol for anything that turns a PromptPair into generated text.

    Callers depend on this protocol only; which authentication and
    addressing strategy sits behind it is invisible to them.

    Required Methods:
        generate(prompt, params) → first-choice text, or a GenerationError
        aclose()                 → release network resources
    """

    async def generate(self, prompt: PromptPair, params: GenerationParameters) -> str:
        """
        Generate text for a prompt pair.

        Raises:
            ConfigurationError: If mandatory settings are missing
            GenerationError: If the call fails (transport, provider, empty)
        """
        ...

    async def aclose(self) -> None:
        ...

    @property
    def provider_name(self) -> str:
        ...

    @property
    def model_name(self) -> str:
        ...


# =============================================================================
# STAGE 2: BASE GENERATION CLIENT (ABSTRACT)
# =============================================================================


class BaseGenerationClient(ABC):
    """
    Abstract base for Azure OpenAI generation clients.

    What subclasses must implement:
        - _create_client(): build the SDK client for their auth strategy
        - _required_settings(): map of setting name → configured value
        - _model_argument(): value passed as `model` on each request
        - provider_name

    What the base class provides:
        - Fail-fast configuration check before any network use
        - Lazy SDK client creation
        - Bounded single-attempt call
        - Response text extraction and error classification
        - Call counters
    """

    def __init__(
        self,
        endpoint: Optional[str],
        deployment_name: Optional[str],
        api_version: Optional[str],
        timeout_seconds: float = 60.0,
        client: Optional[Any] = None,
    ):
        """
        Args:
            endpoint: Azure OpenAI resource endpoint
            deployment_name: Deployment serving the model
            api_version: Azure OpenAI API version
            timeout_seconds: Upper bound for one generation call
            client: Pre-built SDK client (tests inject fakes here)
        """
        # =====================================================================
        # STAGE 2.1: STORE CONFIGURATION
        # =====================================================================
        self._endpoint = endpoint
        self._deployment_name = deployment_name
        self._api_version = api_version
        self._timeout_seconds = timeout_seconds
        self._client = client

        # =====================================================================
        # STAGE 2.2: TRACKING STATE
        # =====================================================================
        self._total_calls = 0
        self._failed_calls = 0

    # =========================================================================
    # STAGE 3: PUBLIC API
    # =========================================================================

    async def generate(self, prompt: PromptPair, params: GenerationParameters) -> str:
        """
        Generate text for prompt with one bounded attempt.

        Algorithm:
            1. Check mandatory settings (ConfigurationError, no network)
            2. Create the SDK client on first use
            3. Await the completion under the timeout
            4. Extract the first choice's text

        Cancellation of the awaiting task propagates unchanged.
        """
        # Step 1: Fail fast on missing configuration
        missing = self.missing_settings()
        if missing:
            raise ConfigurationError(
                f"Azure OpenAI configuration is incomplete. Please ensure "
                f"{', '.join(missing)} {'is' if len(missing) == 1 else 'are'} set.",
                context={"provider": self.provider_name},
                missing_settings=missing,
            )

        # Step 2: Lazy client
        client = self._get_client()

        # Step 3: Bounded call
        logger.info(
            f"Calling generation backend | Provider: {self.provider_name} | "
            f"Deployment: {self.model_name}"
        )
        try:
            response = await asyncio.wait_for(
                self._call_api(client, prompt, params), timeout=self._timeout_seconds
            )
        except asyncio.TimeoutError:
            self._failed_calls += 1
            raise GenerationTimeoutError(self.provider_name, self._timeout_seconds)
        except GenerationError:
            self._failed_calls += 1
            raise
        except Exception as e:
            self._failed_calls += 1
            raise self._classify_error(e)

        # Step 4: Extract text
        try:
            text = self._extract_text(response)
        except GenerationError:
            self._failed_calls += 1
            raise

        self._total_calls += 1
        logger.info(f"Generation received | Length: {len(text)} chars")
        return text

    def missing_settings(self) -> List[str]:
        """Names of required settings that are not configured."""
        return [name for name, value in self._required_settings().items() if not value]

    async def aclose(self) -> None:
        """Close the SDK client, if one was created."""
        if self._client is not None and hasattr(self._client, "close"):
            await self._client.close()
        self._client = None

    # =========================================================================
    # STAGE 4: ABSTRACT METHODS
    # =========================================================================

    @abstractmethod
    def _create_client(self) -> Any:
        """Build the SDK client for this strategy."""
        ...

    @abstractmethod
    def _required_settings(self) -> Dict[str, Optional[str]]:
        """Setting name → configured value for every mandatory setting."""
        ...

    @property
    @abstractmethod
    def provider_name(self) -> str:
        ...

    def _model_argument(self) -> str:
        """Value sent as `model`; Azure routes by deployment name."""
        return self._deployment_name or ""

    # =========================================================================
    # STAGE 5: COMMON IMPLEMENTATION
    # =========================================================================

    @property
    def model_name(self) -> str:
        return self._deployment_name or "unconfigured"

    def _get_client(self) -> Any:
        if self._client is None:
            self._client = self._create_client()
        return self._client

    async def _call_api(self, client: Any, prompt: PromptPair, params: GenerationParameters) -> Any:
        return await client.chat.completions.create(
            model=self._model_argument(),
            messages=prompt.to_messages(),
            **params.to_request_kwargs(),
        )

    def _extract_text(self, response: Any) -> str:
        """First choice's message content, or a classified failure."""
        choices = getattr(response, "choices", None) or []
        if not choices:
            raise EmptyGenerationError(self.provider_name)

        choice = choices[0]
        finish_reason = getattr(choice, "finish_reason", None)
        if finish_reason == "content_filter":
            raise ContentFilteredError(self.provider_name, reason="completion withheld")

        message = getattr(choice, "message", None)
        content = getattr(message, "content", None)
        if not isinstance(content, str) or not content.strip():
            raise EmptyGenerationError(self.provider_name, finish_reason=finish_reason)

        return content

    def _classify_error(self, error: Exception) -> GenerationError:
        """Translate SDK / credential exceptions into the closed taxonomy."""
        provider = self.provider_name

        if isinstance(error, openai.APITimeoutError):
            return GenerationTimeoutError(provider, self._timeout_seconds)

        if isinstance(error, (openai.AuthenticationError, openai.PermissionDeniedError)):
            return TransportError(
                f"Authentication with {provider} failed (HTTP {error.status_code})",
                provider=provider,
                original_error=error,
            )

        if isinstance(error, ClientAuthenticationError):
            return TransportError(
                f"Could not acquire an access token for {provider}",
                provider=provider,
                original_error=error,
            )

        if isinstance(error, openai.APIConnectionError):
            return TransportError(
                f"Could not reach {provider}", provider=provider, original_error=error
            )

        if isinstance(error, openai.APIStatusError):
            code = getattr(error, "code", None)
            if code == "content_filter":
                return ContentFilteredError(provider, reason=_status_message(error))
            return ProviderError(
                f"{provider} returned HTTP {error.status_code}: {_status_message(error)}",
                provider=provider,
                provider_status=error.status_code,
                provider_code=str(code) if code else None,
                original_error=error,
            )

        logger.error(f"Unexpected error in generation call: {type(error).__name__}: {error}")
        return TransportError(
            f"Unexpected error calling {provider}", provider=provider, original_error=error
        )

    # =========================================================================
    # STAGE 6: METRICS
    # =========================================================================

    @property
    def total_calls(self) -> int:
        """Number of successful generation calls."""
        return self._total_calls

    @property
    def failed_calls(self) -> int:
        return self._failed_calls


def _status_message(error: Any) -> str:
    body = getattr(error, "body", None)
    if isinstance(body, dict):
        message = body.get("message") or (body.get("error") or {}).get("message")
        if message:
            return str(message)
    return getattr(error, "message", None) or str(error)
