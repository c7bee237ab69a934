"""Adapters for the payload formats Cursor writes to its state databases."""

from .base import (
    Adapter,
    AdapterRegistry,
    ExtractionResult,
    extract_code_blocks,
    generate_stable_id,
    generate_thread_title,
    normalize_role,
)
from .chatdata import ChatDataAdapter
from .composer import ComposerAdapter

__all__ = [
    "Adapter",
    "AdapterRegistry",
    "ChatDataAdapter",
    "ComposerAdapter",
    "ExtractionResult",
    "extract_code_blocks",
    "generate_stable_id",
    "generate_thread_title",
    "normalize_role",
]

# Register adapters
AdapterRegistry.register(ChatDataAdapter())
AdapterRegistry.register(ComposerAdapter())
