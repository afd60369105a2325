"""Control Crosswalk: requirement-control mapping, gap and drift engine."""

__version__ = "1.0.0"
