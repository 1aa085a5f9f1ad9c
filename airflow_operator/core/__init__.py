"""
Core domain-agnostic components of the operator.

This package contains the schemas exchanged with the reconcile engine, the
error taxonomy, configuration loading and credential generation.
"""

__all__ = []
