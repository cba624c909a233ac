"""Report generation module - audit artifacts for plans and runs."""

from .artifact import generate_artifacts

__all__ = ["generate_artifacts"]
