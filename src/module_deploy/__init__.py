"""Validate, deploy and remove infrastructure-as-code modules."""

__version__ = "1.0.0"
