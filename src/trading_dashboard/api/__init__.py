"""HTTP access to the stock analysis backend."""

from .client import AnalysisApiClient

__all__ = ['AnalysisApiClient']
