"""infragraph - Declarative resource-graph provisioner."""

from typing import Optional
from .config import load_engine_config
from .engine import ApplyResult, Engine, PlanResult, build_engine
from .ingest.declaration_loader import load_declarations
from .utils.errors import InfragraphError
from .utils.logging import setup_logging, get_logger

__version__ = "0.1.0"

__all__ = ["plan", "apply", "destroy", "Engine", "PlanResult", "ApplyResult"]

setup_logging()
logger = get_logger("infragraph")


def plan(declaration_path: str, config_path: Optional[str] = None, refresh: Optional[bool] = None) -> PlanResult:
    """Plan the declarations in a file against the configured state and provider."""
    settings = load_engine_config(config_path)
    resources = load_declarations(declaration_path)
    return build_engine(settings).plan(resources, refresh=refresh)


def apply(declaration_path: str, config_path: Optional[str] = None, refresh: Optional[bool] = None) -> ApplyResult:
    """Converge the configured provider to the declarations in a file."""
    try:
        settings = load_engine_config(config_path)
        resources = load_declarations(declaration_path)
        logger.info(f"Applying {len(resources)} declared resources from {declaration_path}")
        return build_engine(settings).apply(resources, refresh=refresh)
    except InfragraphError:
        raise
    except Exception as e:
        logger.error(f"Unexpected error during apply: {e}", exc_info=True)
        raise InfragraphError(f"Apply failed: {e}") from e


def destroy(declaration_path: str, config_path: Optional[str] = None) -> ApplyResult:
    """Destroy every resource tracked in state."""
    settings = load_engine_config(config_path)
    resources = load_declarations(declaration_path)
    return build_engine(settings).apply(resources, destroy=True)
