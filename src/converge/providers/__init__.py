from .base import Provider
from .schema import ResourceSchema, AttributeSpec, AttributeType, permissive_schema
from .memory import MemoryProvider
from .registry import SUPPORTED_PROVIDERS, get_provider

__all__ = [
    "Provider",
    "ResourceSchema",
    "AttributeSpec",
    "AttributeType",
    "permissive_schema",
    "MemoryProvider",
    "SUPPORTED_PROVIDERS",
    "get_provider",
]
