"""Oncall Gym - incident investigation engine and scenario evaluator."""

__version__ = "0.1.0"
