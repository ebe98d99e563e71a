"""
Model Registry

This module defines the capability profiles of the backend models the
dispatcher can route to. Each profile describes:
- Identity: provider and model name, combined into the "provider:model" key
- Capability ratings on a 0-10 scale (higher is better; speed higher = faster)
- Cost per input/output unit (an approximate token-equivalent)

Profiles are immutable once constructed. The registry keeps them in
registration order, which is also the tie-break order for candidate ranking.
"""

from enum import Enum
from pydantic import BaseModel, ConfigDict, Field, field_validator

from llm_router.errors import ConfigurationError


class Capability(str, Enum):
    """Capability dimensions used for filtering and ranking."""

    SPEED = "speed"
    KNOWLEDGE = "knowledge"
    REASONING = "reasoning"
    CREATIVITY = "creativity"


# Unit volume used for cost-bound filtering (1000 input + 1000 output units)
COST_ESTIMATE_UNITS = 1000


class CapabilityProfile(BaseModel):
    """
    Complete description of one registered backend model.

    This class holds all information needed to:
    1. Filter candidates by capability and cost bounds
    2. Rank candidates for a fallback strategy
    3. Estimate request cost for metrics
    """

    model_config = ConfigDict(frozen=True)

    provider: str = Field(
        ...,
        min_length=1,
        description="Provider name, first half of the routing key",
    )

    model: str = Field(
        ...,
        min_length=1,
        description="Model name, second half of the routing key",
    )

    capabilities: dict[str, float] = Field(
        default_factory=dict,
        description="Capability name to 0-10 rating",
    )

    cost_per_input_unit: float = Field(
        ...,
        ge=0,
        description="Cost in USD per input unit",
    )

    cost_per_output_unit: float = Field(
        ...,
        ge=0,
        description="Cost in USD per output unit",
    )

    max_context_units: int | None = Field(
        default=None,
        gt=0,
        description="Context window size, informational only",
    )

    @field_validator("capabilities")
    @classmethod
    def validate_ratings(cls, v: dict[str, float]) -> dict[str, float]:
        """Ensure every rating is on the 0-10 scale."""
        for name, rating in v.items():
            if not 0 <= rating <= 10:
                raise ValueError(f"capability '{name}' must be between 0 and 10")
        return v

    @property
    def key(self) -> str:
        """Routing key in the form "provider:model"."""
        return f"{self.provider}:{self.model}"

    @property
    def unit_cost(self) -> float:
        """Combined cost of one input and one output unit."""
        return self.cost_per_input_unit + self.cost_per_output_unit

    def rating(self, capability: Capability | str) -> float:
        """Return the rating for a capability, 0 when not declared."""
        name = capability.value if isinstance(capability, Capability) else capability
        return self.capabilities.get(name, 0.0)

    def estimate_cost(
        self,
        input_units: int = COST_ESTIMATE_UNITS,
        output_units: int = COST_ESTIMATE_UNITS,
    ) -> float:
        """Estimated cost in USD for the given unit volume."""
        return (
            self.cost_per_input_unit * input_units
            + self.cost_per_output_unit * output_units
        )


class ModelRegistry:
    """
    Ordered collection of capability profiles.

    Registration is expected during initialization only; afterwards the
    registry is read concurrently by request tasks.

    Attributes:
        _profiles: Dictionary mapping routing keys to profiles, in
                   registration order
    """

    def __init__(self, profiles: list[CapabilityProfile] | None = None) -> None:
        self._profiles: dict[str, CapabilityProfile] = {}
        for profile in profiles or []:
            self.register(profile)

    def register(self, profile: CapabilityProfile) -> None:
        """
        Register a profile.

        Raises:
            ConfigurationError: If a profile with the same key already exists
        """
        if profile.key in self._profiles:
            raise ConfigurationError(f"Candidate already registered: {profile.key}")
        self._profiles[profile.key] = profile

    def get(self, key: str) -> CapabilityProfile | None:
        """Retrieve a profile by routing key."""
        return self._profiles.get(key)

    def list_profiles(self) -> list[CapabilityProfile]:
        """Return all profiles in registration order."""
        return list(self._profiles.values())

    def keys(self) -> list[str]:
        """Return all routing keys in registration order."""
        return list(self._profiles.keys())

    def __contains__(self, key: object) -> bool:
        return key in self._profiles

    def __len__(self) -> int:
        return len(self._profiles)


DEFAULT_PROFILES: tuple[CapabilityProfile, ...] = (
    CapabilityProfile(
        provider="openai",
        model="gpt-4o-mini",
        capabilities={"speed": 9, "knowledge": 7, "reasoning": 7, "creativity": 8},
        cost_per_input_unit=0.00000015,
        cost_per_output_unit=0.0000006,
        max_context_units=128000,
    ),
    CapabilityProfile(
        provider="openai",
        model="gpt-4o",
        capabilities={"speed": 6, "knowledge": 9, "reasoning": 9, "creativity": 8},
        cost_per_input_unit=0.000005,
        cost_per_output_unit=0.000015,
        max_context_units=128000,
    ),
    CapabilityProfile(
        provider="groq",
        model="llama-3.1-8b-instant",
        capabilities={"speed": 10, "knowledge": 6, "reasoning": 5, "creativity": 6},
        cost_per_input_unit=0.00000005,
        cost_per_output_unit=0.00000008,
        max_context_units=131072,
    ),
    CapabilityProfile(
        provider="groq",
        model="llama-3.3-70b-versatile",
        capabilities={"speed": 8, "knowledge": 8, "reasoning": 8, "creativity": 7},
        cost_per_input_unit=0.00000059,
        cost_per_output_unit=0.00000079,
        max_context_units=131072,
    ),
)
