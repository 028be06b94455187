"""CLI commands for the diagram documentation generator.

Provides the Click-based command group 'diagramdoc' with subcommands
for analyzing a source file into Markdown and for checking standalone
diagram files.
"""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

import click

from diagramdoc import __version__
from diagramdoc.diagrams.repair import DiagramRepairer
from diagramdoc.diagrams.validation import ValidatorRegistry
from diagramdoc.generators.analysis_gen import AnalysisGenerator
from diagramdoc.generators.llm_client import LLMClient
from diagramdoc.output.markdown import MarkdownWriter
from diagramdoc.parsers.document import DiagramKind, DiagramSpec
from diagramdoc.utils.config import AppConfig, load_config
from diagramdoc.utils.errors import DiagramDocError
from diagramdoc.utils.logging import setup_logging

logger = logging.getLogger(__name__)

_GENERIC_FAILURE = "Failed to process code file."

_DIAGRAM_SUFFIXES: dict[str, str] = {
    ".mmd": "mermaid",
    ".mermaid": "mermaid",
    ".puml": "plantuml",
    ".plantuml": "plantuml",
    ".uml": "plantuml",
}


def _fail(error: Exception) -> None:
    """Report a request failure and exit.

    Pipeline errors print their caller-safe message; anything else
    prints a generic message. Full detail only goes to the log.
    """
    if isinstance(error, DiagramDocError):
        logger.error("%s: %s", type(error).__name__, error)
        click.echo(f"Error: {error.public_message}", err=True)
        sys.exit(error.exit_code)
    logger.exception("Analysis failed")
    click.echo(f"Error: {_GENERIC_FAILURE}", err=True)
    sys.exit(1)


@click.group()
@click.version_option(version=__version__, prog_name="diagramdoc")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Path to a config.yaml file.",
)
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[str]) -> None:
    """Diagram Documentation Generator: explain code with validated diagrams."""
    config = load_config(config_path)
    setup_logging(
        level=config.logging.level,
        log_format=config.logging.format,
        log_file=config.logging.file,
    )
    ctx.obj = config


@cli.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--output", "-o", type=click.Path(dir_okay=False), default=None, help="Output file path."
)
@click.option("--output-dir", type=click.Path(file_okay=False), default=None, help="Output directory.")
@click.option("--stdout", "to_stdout", is_flag=True, help="Print the document instead of writing it.")
@click.option("--name", default=None, help="File name to report to the model. Defaults to the file's name.")
@click.pass_obj
def analyze(
    config: AppConfig,
    path: str,
    output: Optional[str],
    output_dir: Optional[str],
    to_stdout: bool,
    name: Optional[str],
) -> None:
    """Generate a Markdown analysis with diagrams for one source file.

    Sends the file to the model, validates and repairs every diagram
    it returns, and writes the assembled document.
    """
    source = Path(path)
    file_name = name or source.name
    code = source.read_text(encoding="utf-8", errors="replace")

    try:
        generator = AnalysisGenerator(LLMClient(config=config.api), config=config)
        result = asyncio.run(generator.analyze(file_name, code))
    except Exception as e:
        _fail(e)
        return

    for diagram in result.invalid_diagrams:
        click.echo(
            f"Warning: {diagram.fence_tag} diagram at slot {diagram.slot_index} "
            f"is still invalid: {diagram.last_error}",
            err=True,
        )

    if to_stdout:
        click.echo(result.markdown)
        return

    if output:
        out_path = Path(output)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(result.markdown, encoding="utf-8")
    else:
        writer = MarkdownWriter(output_dir=output_dir or config.output.output_dir)
        out_path = writer.write_document(file_name, result.markdown)
    click.echo(f"Analysis written to {out_path}")


@cli.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--type",
    "diagram_type",
    default=None,
    help="Diagram type (mermaid, plantuml, puml, uml). Inferred from the extension if omitted.",
)
@click.option("--fix", is_flag=True, help="Ask the model to repair the diagram if it is invalid.")
@click.pass_obj
def validate(config: AppConfig, path: str, diagram_type: Optional[str], fix: bool) -> None:
    """Check a standalone diagram file against its grammar.

    Exits with status 1 if the diagram is invalid. With --fix, the
    repaired diagram is printed to stdout.
    """
    source = Path(path)
    declared = diagram_type or _DIAGRAM_SUFFIXES.get(source.suffix.lower())
    kind = DiagramKind.from_declared(declared)
    if kind is DiagramKind.UNKNOWN:
        raise click.UsageError(f"Cannot validate diagram type: {declared or source.suffix}")

    spec = DiagramSpec(
        kind=kind,
        source_text=source.read_text(encoding="utf-8", errors="replace"),
        slot_index=0,
        declared_type=declared or kind.value,
    )
    repairer = DiagramRepairer(
        LLMClient(config=config.api),
        registry=ValidatorRegistry.default(config.diagrams),
        api_config=config.api,
        max_retries=config.diagrams.max_retries if fix else 0,
    )
    result = asyncio.run(repairer.repair(spec))

    if result.valid:
        click.echo(f"{path}: valid {kind.value} diagram")
    else:
        click.echo(f"{path}: invalid {kind.value} diagram: {result.last_error}", err=True)
    if fix and result.attempts:
        click.echo(result.final_text)
    if not result.valid:
        sys.exit(1)
