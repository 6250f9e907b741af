"""
MineTwin: grounding and execution engine for haul-fleet digital twins.

Resolves free-text references to twin entities and properties, runs typed
queries over truck telemetry and applies validated property updates to the
twin model.
"""

__version__ = "1.0.0"
