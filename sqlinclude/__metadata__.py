"""Metadata for the project."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("sqlinclude")
except PackageNotFoundError:
    __version__ = "0.0.0"

__all__ = ("__version__",)
