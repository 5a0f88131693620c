"""Select the generation client strategy from configuration."""

from consultologist.clients.azure_identity_client import AzureIdentityClient
from consultologist.clients.azure_key_client import AzureKeyClient
from consultologist.clients.llm_client import BaseGenerationClient
from consultologist.core.config import PipelineConfiguration
from consultologist.core.enums import AuthMode


def create_generation_client(config: PipelineConfiguration) -> BaseGenerationClient:
    """
    Build the client for config.auth_mode.

    Construction never touches the network and never fails on missing
    settings; those surface on the first generate() call.

    Example:
        >>> config = PipelineConfiguration(auth_mode=AuthMode.MANAGED_IDENTITY)
        >>> create_generation_client(config).provider_name
        'azure-openai-identity'
    """
    if config.auth_mode is AuthMode.MANAGED_IDENTITY:
        return AzureIdentityClient(
            endpoint=config.azure_endpoint,
            deployment_name=config.deployment_name,
            api_version=config.api_version,
            token_scope=config.token_scope,
            timeout_seconds=config.timeout_seconds,
        )

    return AzureKeyClient(
        endpoint=config.azure_endpoint,
        deployment_name=config.deployment_name,
        api_version=config.api_version,
        api_key=config.api_key,
        timeout_seconds=config.timeout_seconds,
    )
