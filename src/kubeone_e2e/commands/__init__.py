"""CLI commands."""

from .generate import generate
from .run import run

__all__ = ["generate", "run"]
