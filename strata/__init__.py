"""strata: parses planner actions and executes them against mail, calendar and task backends."""

__version__ = "0.1.0"
