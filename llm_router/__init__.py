"""
LLM Router: Cost- and Capability-Aware Model Dispatch

Dispatches a text request to one of several interchangeable model backends,
choosing among them by cost, capability, and task complexity, with automatic
fallback on failure and a two-tier (exact + semantic) result cache.
"""

__version__ = "0.1.0"
