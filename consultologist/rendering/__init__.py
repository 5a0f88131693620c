"""
Rendering Layer - Presentation of Validated Records

Submodules:
    template_renderer.py → ConsultTemplate, load_template(), render(),
                           render_error_fragment()

Dependency Rule:
    This layer depends on: core, schema (ValidatedRecord only)
    This layer is used by: pipeline, api
"""

from consultologist.rendering.template_renderer import (
    ConsultTemplate,
    load_template,
    render,
    render_error_fragment,
)

__all__ = [
    "ConsultTemplate",
    "load_template",
    "render",
    "render_error_fragment",
]
