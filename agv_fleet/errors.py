"""Exceptions raised by the fleet simulation.

Infeasible orders and missed deadlines are recorded as order state, not raised.
"""


class ConfigError(ValueError):
    """A configuration value was rejected at construction time."""


class InvariantViolation(RuntimeError):
    """A model invariant was broken. The run cannot continue."""
