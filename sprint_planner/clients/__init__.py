"""Client access points."""

from .gemini_client import GeminiPlannerClient, PlannerClient

__all__ = ["GeminiPlannerClient", "PlannerClient"]
