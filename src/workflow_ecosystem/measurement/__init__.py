"""Numeric measurement helpers (trend regression)."""

from workflow_ecosystem.measurement.regression import TrendFit, classify_slope, fit_trend

__all__ = ["TrendFit", "classify_slope", "fit_trend"]
