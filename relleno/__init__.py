"""Schema-gated task documents with a per-task state workflow."""

__version__ = "0.1.0"
