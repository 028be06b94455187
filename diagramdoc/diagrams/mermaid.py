"""Mermaid validation through the Mermaid CLI.

The CLI renders in a headless browser, so checking a diagram means a
real parse by Mermaid itself without any network traffic. The browser
configuration and scratch directory are built once per process and
shared by every validator instance.
"""

import asyncio
import atexit
import json
import logging
import re
import shutil
import tempfile
import threading
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from diagramdoc.diagrams.validation import DiagramValidator, ValidationOutcome
from diagramdoc.utils.config import MermaidConfig

logger = logging.getLogger(__name__)

EMPTY_DEFINITION_ERROR = "Empty Mermaid definition"
_STACK_FRAME = re.compile(r"^[\w.$]+\.parseError\b")

_environment: Optional["MermaidEnvironment"] = None
_environment_lock = threading.Lock()


def _extract_parse_error(stderr: str) -> str:
    """Pull the parser message out of Mermaid CLI stderr.

    Keeps everything from the first line mentioning an error up to the
    JavaScript stack trace, and drops the leading ``Error:`` label.
    """
    lines = stderr.strip().splitlines()
    start = next((i for i, line in enumerate(lines) if "error" in line.lower()), 0)
    kept = []
    for line in lines[start:]:
        stripped = line.strip()
        if stripped.startswith("at ") or _STACK_FRAME.match(stripped):
            break
        kept.append(line.rstrip())
    message = "\n".join(kept).strip()
    if message.startswith("Error:"):
        message = message[len("Error:"):].strip()
    return message


@dataclass(frozen=True)
class MermaidEnvironment:
    """Resolved Mermaid CLI command and its private working directory.

    Attributes:
        command: Executable followed by any fixed arguments.
        workdir: Scratch directory for input and output files.
        puppeteer_config: Headless browser launch settings.
        mermaid_config: Mermaid initialization settings.
    """

    command: tuple[str, ...]
    workdir: Path
    puppeteer_config: Path
    mermaid_config: Path

    @classmethod
    def create(cls, config: MermaidConfig) -> "MermaidEnvironment":
        """Resolve the CLI and write its browser and Mermaid settings.

        Raises:
            FileNotFoundError: If the configured executable is not on PATH.
        """
        if not config.command:
            raise FileNotFoundError("No Mermaid CLI command configured")
        executable = shutil.which(config.command[0])
        if executable is None:
            raise FileNotFoundError(f"Mermaid CLI not found: {config.command[0]}")

        workdir = Path(tempfile.mkdtemp(prefix="diagramdoc-mermaid-"))
        atexit.register(shutil.rmtree, workdir, ignore_errors=True)

        puppeteer_config = workdir / "puppeteer.json"
        puppeteer_config.write_text(json.dumps({"args": ["--no-sandbox"]}), encoding="utf-8")
        mermaid_config = workdir / "mermaid.json"
        mermaid_config.write_text(
            json.dumps({"startOnLoad": False, "theme": config.theme}), encoding="utf-8"
        )

        logger.info("Initialized Mermaid CLI environment at %s", workdir)
        return cls(
            command=(executable, *config.command[1:]),
            workdir=workdir,
            puppeteer_config=puppeteer_config,
            mermaid_config=mermaid_config,
        )

    async def check(self, definition: str, timeout: float) -> ValidationOutcome:
        """Render a definition and report whether Mermaid accepted it.

        Raises:
            TimeoutError: If the CLI does not finish within ``timeout``.
            OSError: If the CLI cannot be started.
        """
        stem = uuid.uuid4().hex
        input_path = self.workdir / f"{stem}.mmd"
        output_path = self.workdir / f"{stem}.svg"
        input_path.write_text(definition, encoding="utf-8")

        try:
            process = await asyncio.create_subprocess_exec(
                *self.command,
                "--quiet",
                "--input", str(input_path),
                "--output", str(output_path),
                "--puppeteerConfigFile", str(self.puppeteer_config),
                "--configFile", str(self.mermaid_config),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            try:
                _, stderr = await asyncio.wait_for(process.communicate(), timeout)
            except asyncio.TimeoutError:
                process.kill()
                await process.wait()
                raise TimeoutError(f"Mermaid CLI timed out after {timeout:g}s")
        finally:
            input_path.unlink(missing_ok=True)
            output_path.unlink(missing_ok=True)

        if process.returncode == 0:
            return ValidationOutcome.ok()

        error_text = stderr.decode("utf-8", errors="replace")
        message = _extract_parse_error(error_text) or error_text.strip()
        return ValidationOutcome.failure(
            message or f"Mermaid CLI exited with code {process.returncode}"
        )


def get_mermaid_environment(config: MermaidConfig) -> MermaidEnvironment:
    """Return the process-wide Mermaid environment, creating it once.

    Safe to call from several threads or tasks at once: the first
    caller builds the environment, later callers get the same one. A
    failed initialization is not cached.
    """
    global _environment
    if _environment is None:
        with _environment_lock:
            if _environment is None:
                _environment = MermaidEnvironment.create(config)
    return _environment


class MermaidValidator(DiagramValidator):
    """Validates Mermaid diagrams with the Mermaid CLI parser."""

    def __init__(self, config: Optional[MermaidConfig] = None) -> None:
        self.config = config or MermaidConfig()

    async def validate(self, definition: str) -> ValidationOutcome:
        """Validate a Mermaid definition.

        Args:
            definition: Mermaid source text.

        Returns:
            A valid outcome, or an invalid one carrying Mermaid's parse
            error or the reason the CLI could not run.
        """
        trimmed = definition.strip()
        if not trimmed:
            return ValidationOutcome.failure(EMPTY_DEFINITION_ERROR)

        try:
            environment = get_mermaid_environment(self.config)
            return await environment.check(trimmed, self.config.timeout)
        except Exception as e:
            logger.debug("Mermaid validation raised %s", type(e).__name__, exc_info=True)
            return ValidationOutcome.failure(str(e) or repr(e))
