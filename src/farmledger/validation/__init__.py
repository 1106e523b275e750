"""Validation and sanity checks for farm scenarios."""

from .sanity_checks import SanityChecker, ValidationWarning, projected_emission, validate_simulation_results

__all__ = [
    "SanityChecker",
    "ValidationWarning",
    "projected_emission",
    "validate_simulation_results"
]
