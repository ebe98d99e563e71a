"""
Cost Calculator for Dispatched Requests

Estimates the cost of a provider call from the candidate's per-unit prices.
Unit counts come from the backend's reported usage when available and from
the provider's local estimate otherwise, so figures are approximate.
"""

from dataclasses import dataclass

from llm_router.registry.models import CapabilityProfile


@dataclass
class CostBreakdown:
    """
    Cost breakdown for a single provider call.

    Attributes:
        input_units: Input units billed
        output_units: Output units billed
        input_cost_usd: Cost for input units in USD
        output_cost_usd: Cost for output units in USD
        candidate: Routing key of the candidate that answered
    """

    input_units: int
    output_units: int
    input_cost_usd: float
    output_cost_usd: float
    candidate: str

    @property
    def total_units(self) -> int:
        """Total units processed (input + output)."""
        return self.input_units + self.output_units

    @property
    def total_cost_usd(self) -> float:
        """Total estimated cost (input + output)."""
        return self.input_cost_usd + self.output_cost_usd


class CostCalculator:
    """
    Calculate estimated request costs.

    Stateless; safe to share between concurrent requests.

    Example:
        calculator = CostCalculator()
        cost = calculator.calculate(profile, input_units=150, output_units=50)
        print(f"${cost.total_cost_usd:.6f}")
    """

    def calculate(
        self, profile: CapabilityProfile, input_units: int, output_units: int
    ) -> CostBreakdown:
        """
        Calculate the cost breakdown for a request.

        Args:
            profile: Candidate profile with pricing information
            input_units: Number of input units
            output_units: Number of output units

        Returns:
            Cost breakdown
        """
        return CostBreakdown(
            input_units=input_units,
            output_units=output_units,
            input_cost_usd=input_units * profile.cost_per_input_unit,
            output_cost_usd=output_units * profile.cost_per_output_unit,
            candidate=profile.key,
        )


_calculator: CostCalculator | None = None


def get_cost_calculator() -> CostCalculator:
    """
    Get the global cost calculator instance.

    Returns:
        Singleton CostCalculator instance
    """
    global _calculator
    if _calculator is None:
        _calculator = CostCalculator()
    return _calculator
