"""Resilient LLM pipeline for generating treasury technology business cases."""

__version__ = "0.1.0"
