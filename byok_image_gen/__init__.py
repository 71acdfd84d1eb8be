"""
BYOK Image Gen

Bring-your-own-key image generation across OpenAI, Google Imagen and xAI,
exposed through one adapter contract and a FastMCP tool surface.
"""

__version__ = "0.1.0"

try:
    import importlib.metadata

    __version__ = importlib.metadata.version("byok-image-gen")
except (importlib.metadata.PackageNotFoundError, ImportError):
    # Fallback for development mode
    pass

__all__ = ["__version__"]
