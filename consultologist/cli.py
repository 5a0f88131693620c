"""
Consultologist command line.

Subcommands:
    serve         Run the HTTP service with uvicorn
    render        Run the pipeline once and write the HTML
    check-schema  Load and compile a schema document, print its summary
"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import List, Optional

import uvicorn
from loguru import logger

from consultologist import __version__
from consultologist.core.config import PipelineConfiguration
from consultologist.core.enums import AdditionalFieldsPolicy
from consultologist.core.exceptions import ConfigurationError, SchemaLoadError
from consultologist.core.log_setup import configure_logging
from consultologist.pipeline import ConsultationPipeline
from consultologist.schema.registry import load_schema_document
from consultologist.schema.validator import compile_validator


def create_argument_parser() -> argparse.ArgumentParser:
    """
    Create and configure the command-line argument parser.

    Step 1: Create the top-level parser
    Step 2: Add the serve subcommand
    Step 3: Add the render subcommand
    Step 4: Add the check-schema subcommand

    Example:
        >>> parser = create_argument_parser()
        >>> args = parser.parse_args(["render", "--prompt", "58F, pT1c N0 M0"])
    """
    # Step 1: Top-level parser
    parser = argparse.ArgumentParser(
        prog="consultologist",
        description="Generate schema-validated breast oncology consultation notes",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  Run the HTTP service:
    consultologist serve --port 4321

  Render one consultation to a file:
    consultologist render --input consult.txt --output consult.html

  Check a candidate schema before deploying it:
    consultologist check-schema --schema ./schema.json --policy lenient

Requirements:
  - AZURE_OPENAI_ENDPOINT, AZURE_OPENAI_DEPLOYMENT_NAME, AZURE_OPENAI_API_VERSION
  - OPENAI_API_KEY (key auth) or an Azure identity (managed identity auth)
        """,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--env-file", type=str, default=None, help="Path to a .env file")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # Step 2: serve
    serve = subparsers.add_parser("serve", help="Run the HTTP service")
    serve.add_argument("--host", type=str, default=None, help="Bind address (default: HOST or 0.0.0.0)")
    serve.add_argument("--port", type=int, default=None, help="Bind port (default: PORT or 4321)")

    # Step 3: render
    render = subparsers.add_parser("render", help="Render one consultation to HTML")
    source = render.add_mutually_exclusive_group(required=True)
    source.add_argument("--prompt", type=str, help="Consultation text")
    source.add_argument("--input", type=str, help="File containing the consultation text")
    render.add_argument("--output", type=str, default=None, help="Write HTML here (default: stdout)")

    # Step 4: check-schema
    check = subparsers.add_parser("check-schema", help="Load and compile a schema document")
    check.add_argument("--schema", type=str, default=None, help="Schema path (default: configured schema)")
    check.add_argument(
        "--policy",
        type=str,
        choices=[p.value for p in AdditionalFieldsPolicy],
        default=AdditionalFieldsPolicy.STRICT.value,
        help="Additional fields policy (default: strict)",
    )

    return parser


# =============================================================================
# SUBCOMMANDS
# =============================================================================


def _serve(args: argparse.Namespace, config: PipelineConfiguration) -> int:
    from consultologist.api.app import create_app_from_config

    if args.host:
        config.host = args.host
    if args.port:
        config.port = args.port
    config.validate()

    app = create_app_from_config(config)
    uvicorn.run(app, host=config.host, port=config.port, log_level=config.log_level.lower())
    return 0


async def _render_once(pipeline: ConsultationPipeline, prompt: str):
    try:
        return await pipeline.run(prompt)
    finally:
        await pipeline.gateway.aclose()


def _render(args: argparse.Namespace, config: PipelineConfiguration) -> int:
    if args.input:
        try:
            prompt = Path(args.input).read_text(encoding="utf-8")
        except OSError as e:
            print(f"[FAIL] Could not read {args.input}: {e}", file=sys.stderr)
            return 1
    else:
        prompt = args.prompt

    pipeline = ConsultationPipeline.from_configuration(config)
    outcome = asyncio.run(_render_once(pipeline, prompt))

    if not outcome.succeeded:
        error = outcome.error
        print(f"[FAIL] {error.title} ({error.http_status}): {error.message}", file=sys.stderr)
        return 1

    if args.output:
        Path(args.output).write_text(outcome.html, encoding="utf-8")
        print(f"[OK] Wrote {len(outcome.html)} chars to {args.output}")
    else:
        sys.stdout.write(outcome.html)
    return 0


def _check_schema(args: argparse.Namespace, config: PipelineConfiguration) -> int:
    path = args.schema or config.schema_path
    policy = AdditionalFieldsPolicy.from_string(args.policy)
    try:
        document = load_schema_document(path)
    except SchemaLoadError as e:
        print(f"[FAIL] {e.message}", file=sys.stderr)
        return 1

    compile_validator(document, policy)
    print(f"[OK] {document.schema_id}")
    print(f"  - Version: {document.version}")
    print(f"  - Title: {document.title}")
    print(f"  - Top-level fields: {len(document.top_level_fields)}")
    print(f"  - Required fields: {', '.join(document.required_fields)}")
    print(f"  - Policy: {policy.value}")
    return 0


_COMMANDS = {
    "serve": _serve,
    "render": _render,
    "check-schema": _check_schema,
}


def main(argv: Optional[List[str]] = None) -> int:
    """
    Entry point for the `consultologist` console script.

    Returns:
        Process exit code (0 success, 1 classified failure)
    """
    parser = create_argument_parser()
    args = parser.parse_args(argv)

    try:
        config = PipelineConfiguration.from_environment(env_file=args.env_file)
    except ConfigurationError as e:
        print(f"[FAIL] {e}", file=sys.stderr)
        return 1

    configure_logging(config.log_level, json_output=config.log_json)

    try:
        return _COMMANDS[args.command](args, config)
    except ConfigurationError as e:
        logger.error(f"Startup failed | {e}")
        print(f"[FAIL] {e.message}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
