"""Chat Workflow Orchestrator.

Routes chat messages to trigger-matched workflows, lets a language model pick
the tool call for each turn, and validates that selection before it reaches a
task tracker or calendar connector.
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
