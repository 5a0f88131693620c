"""
API Layer - HTTP Host for the Consultation Pipeline

Submodules:
    app.py → create_app(), ConsultationRequest, error payload helpers

Dependency Rule:
    This layer depends on: every other layer
    Nothing inside consultologist depends on it
"""

from consultologist.api.app import (
    ConsultationRequest,
    create_app,
    create_app_from_config,
)

__all__ = [
    "ConsultationRequest",
    "create_app",
    "create_app_from_config",
]
