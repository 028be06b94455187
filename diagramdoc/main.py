"""Entry point for the Diagram Documentation Generator.

Delegates to the Click command group, which loads configuration and
sets up logging before running a subcommand.
"""

from diagramdoc.cli.commands import cli


def main() -> None:
    """Launch the CLI."""
    cli(prog_name="diagramdoc")


if __name__ == "__main__":
    main()
