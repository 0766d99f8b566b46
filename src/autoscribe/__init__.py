"""Autoscribe: replace trigger spans in a document with model-generated text."""

__all__ = ["__version__"]

__version__ = "0.3.0"
