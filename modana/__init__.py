"""Equation-oriented model building and bounded nonlinear solving."""

__version__ = "0.1.0"
__all__ = ["expressions", "model", "solver"]