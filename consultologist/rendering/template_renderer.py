"""
Template Renderer - Validated Record to HTML

This module loads the consultation presentation template once at startup and
renders ValidatedRecords into HTML fragments. It also renders the error
fragment hosts return when a request fails.

Rendering Rules:
    - Input must be a ValidatedRecord (TypeError otherwise)
    - Autoescaping is on: generated text can never inject markup
    - Undefined variables raise (StrictUndefined); optional fields are
      guarded with `is defined` in the template
    - The sandbox forbids attribute mutation and unsafe access

Pipeline Position:
    ValidationGate → [TemplateRenderer] → Host (HTTP / CLI)
                      ^^^^^^^^^^^^^^^^
                      You are here
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from jinja2 import FileSystemLoader, StrictUndefined, Template, TemplateError
from jinja2.sandbox import ImmutableSandboxedEnvironment
from loguru import logger

from consultologist.core.exceptions import RenderError, TemplateLoadError
from consultologist.schema.validator import ValidatedRecord


# =============================================================================
# STAGE 1: TEMPLATE FILTERS
# =============================================================================


def _fmt_unit(value: Any, unit: str) -> str:
    """Format a number with its unit, dropping a trailing .0."""
    if value is None or value == "":
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return f"{value} {unit}"


def _yes_no(value: Any) -> str:
    return "Yes" if value else "No"


def _titlecase(value: Any) -> str:
    return str(value)[:1].upper() + str(value)[1:] if value else ""


def _build_environment(template_root: Path) -> ImmutableSandboxedEnvironment:
    env = ImmutableSandboxedEnvironment(
        loader=FileSystemLoader(str(template_root)),
        autoescape=True,
        undefined=StrictUndefined,
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.filters["fmt_unit"] = _fmt_unit
    env.filters["yes_no"] = _yes_no
    env.filters["titlecase"] = _titlecase
    return env


# =============================================================================
# STAGE 2: CONSULT TEMPLATE
# =============================================================================


@dataclass(frozen=True)
class ConsultTemplate:
    """
    Compiled presentation template.

    Attributes:
        source_path: File the template was loaded from
        compiled: Jinja2 template bound to the sandboxed environment
    """

    source_path: str
    compiled: Template


def load_template(path: Any) -> ConsultTemplate:
    """
    Load and compile the presentation template.

    Args:
        path: Path to the .j2 template file

    Returns:
        ConsultTemplate ready for render()

    Raises:
        TemplateLoadError: If the file is missing, unreadable or does not compile
    """
    template_path = Path(path)
    if not template_path.is_file():
        raise TemplateLoadError(str(template_path), "file not found")

    env = _build_environment(template_path.parent)
    try:
        compiled = env.get_template(template_path.name)
    except TemplateError as e:
        raise TemplateLoadError(str(template_path), f"{type(e).__name__}: {e}")
    except (OSError, UnicodeDecodeError) as e:
        raise TemplateLoadError(str(template_path), str(e))

    logger.info(f"Template loaded | Path: {template_path}")
    return ConsultTemplate(source_path=str(template_path), compiled=compiled)


# =============================================================================
# STAGE 3: RENDER
# =============================================================================


def render(template: ConsultTemplate, record: ValidatedRecord) -> str:
    """
    Render a validated consultation record to HTML.

    Pure with respect to (template, record): the same inputs always produce
    the same output, and the record is never modified.

    Raises:
        TypeError: If record is not a ValidatedRecord
        RenderError: If the template fails on the record (template/schema drift)

    Example:
        >>> html = render(template, record)
        >>> html.startswith('<article class="consultation"')
        True
    """
    if not isinstance(record, ValidatedRecord):
        raise TypeError(
            f"render() requires a ValidatedRecord, got {type(record).__name__}"
        )

    context: Dict[str, Any] = record.data
    context["schema_version"] = record.schema_version
    try:
        return template.compiled.render(context)
    except Exception as e:
        raise RenderError(f"{type(e).__name__}: {e}", original_error=e) from e


# =============================================================================
# STAGE 4: ERROR FRAGMENT
# =============================================================================

_ERROR_FRAGMENT_SOURCE = """<div class="error-message">
<h3>⚠️ {{ title }}</h3>
<p>{{ message }}</p>
{% if details %}
<details>
<summary>Details</summary>
<pre>{{ details }}</pre>
</details>
{% endif %}
</div>"""

_ERROR_ENV = ImmutableSandboxedEnvironment(autoescape=True, trim_blocks=True, lstrip_blocks=True)
_ERROR_TEMPLATE = _ERROR_ENV.from_string(_ERROR_FRAGMENT_SOURCE)


def render_error_fragment(title: str, message: str, details: Optional[str] = None) -> str:
    """
    HTML fragment describing a failed request.

    Title, message and details are escaped; details are shown only when given.
    """
    return _ERROR_TEMPLATE.render(title=title, message=message, details=details)
