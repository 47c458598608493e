"""Landmark identification client: discovery orchestrator over a generative backend."""

__version__ = "0.1.0"
