"""Docker orchestration for local Arbitrum development containers."""

from ._version import __version__

__all__ = ["__version__"]
