"""
Registry module: Backend capability profiles.

This module contains:
- models.py: CapabilityProfile records and the ordered ModelRegistry

Public API:
- Capability: Enum of capability dimensions
- CapabilityProfile: Pydantic model describing one backend model
- ModelRegistry: Ordered profile collection owned by the dispatcher
- DEFAULT_PROFILES: Bundled OpenAI and Groq profiles
"""

from llm_router.registry.models import (
    COST_ESTIMATE_UNITS,
    DEFAULT_PROFILES,
    Capability,
    CapabilityProfile,
    ModelRegistry,
)

__all__ = [
    "COST_ESTIMATE_UNITS",
    "DEFAULT_PROFILES",
    "Capability",
    "CapabilityProfile",
    "ModelRegistry",
]
