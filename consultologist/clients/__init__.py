"""
Clients Layer - Generation Backend Abstractions

This layer hides which authentication and addressing strategy reaches the
generation backend. The pipeline sees only the GenerationGateway protocol.

Submodules:
    llm_client.py            → GenerationGateway protocol, BaseGenerationClient
    azure_key_client.py      → Static key, deployment bound in the URL
    azure_identity_client.py → Azure AD token, deployment named per request
    factory.py               → create_generation_client()

Dependency Rule:
    This layer depends on: core
    This layer is used by: pipeline, api, cli
"""

from consultologist.clients.llm_client import (
    GenerationGateway,
    BaseGenerationClient,
)
from consultologist.clients.azure_key_client import AzureKeyClient
from consultologist.clients.azure_identity_client import AzureIdentityClient
from consultologist.clients.factory import create_generation_client

__all__ = [
    "GenerationGateway",
    "BaseGenerationClient",
    "AzureKeyClient",
    "AzureIdentityClient",
    "create_generation_client",
]
