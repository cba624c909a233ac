"""CLI utilities package."""

import asyncio
import signal
from typing import Any, Awaitable, Callable, List, Optional, Tuple
import click
from ...config import EngineSettings, load_engine_config
from ...execute.cancellation import CancellationToken
from ...ingest.declaration_loader import load_declarations
from ...model.resources import Resource
from ...utils.errors import DeclarationLoadError, InfragraphError, UnresolvableOrder, ValidationError
from ...utils.logging import get_logger
from .file_resolver import resolve_file_path

logger = get_logger("cli.utils")

EXIT_OK = 0
EXIT_PARTIAL_FAILURE = 1
EXIT_VALIDATION_ERROR = 2


def format_error(message: str, suggestion: Optional[str] = None) -> str:
    """
    Format error message with optional suggestion.

    Args:
        message: Error message
        suggestion: Optional suggestion or help text

    Returns:
        Formatted error string
    """
    error = f"Error: {message}"
    if suggestion:
        error += f"\nTip: {suggestion}"
    return error


def exit_code_for(error: InfragraphError) -> int:
    """Validation problems exit 2; anything else that stopped the run exits 1."""
    if isinstance(error, (ValidationError, UnresolvableOrder)):
        return EXIT_VALIDATION_ERROR
    return EXIT_PARTIAL_FAILURE


def suggestion_for(error: InfragraphError) -> Optional[str]:
    if isinstance(error, ValidationError):
        return "Fix the declarations; nothing was changed."
    if isinstance(error, UnresolvableOrder):
        return "This is an ordering bug; please report it with the plan output."
    return None


def load_run(
    ctx: click.Context,
    declarations: str,
    overrides: Optional[dict] = None,
) -> Tuple[EngineSettings, List[Resource]]:
    """
    Load settings and declarations for a command.

    Raises:
        InfragraphError: If the config or declarations are invalid
    """
    try:
        path = resolve_file_path(declarations)
    except FileNotFoundError as e:
        raise DeclarationLoadError(str(e))
    settings = load_engine_config(ctx.obj.get("config_path") if ctx.obj else None, overrides=overrides)
    resources = load_declarations(str(path))
    return settings, resources


def run_interruptible(operation: Callable[[], Awaitable[Any]], token: CancellationToken) -> Any:
    """
    Run a coroutine with Ctrl-C wired to the cancellation token.

    The first interrupt stops dispatch and aborts in-flight provider calls;
    completed steps stay recorded in state.
    """
    async def runner() -> Any:
        loop = asyncio.get_running_loop()
        try:
            loop.add_signal_handler(signal.SIGINT, token.cancel, "interrupted")
            installed = True
        except (NotImplementedError, RuntimeError):
            logger.debug("Signal handlers not supported; Ctrl-C will not cancel gracefully")
            installed = False
        try:
            return await operation()
        finally:
            if installed:
                loop.remove_signal_handler(signal.SIGINT)

    return asyncio.run(runner())


__all__ = [
    "EXIT_OK",
    "EXIT_PARTIAL_FAILURE",
    "EXIT_VALIDATION_ERROR",
    "format_error",
    "exit_code_for",
    "suggestion_for",
    "load_run",
    "resolve_file_path",
    "run_interruptible",
]
