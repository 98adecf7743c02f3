"""LLM-backed analysis provider."""

from rxreminders.adapters.analysis.factory import get_analysis_provider
from rxreminders.adapters.analysis.llm_provider import LLMAnalysisProvider

__all__ = ["get_analysis_provider", "LLMAnalysisProvider"]
