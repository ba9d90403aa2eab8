"""Core modules for einplan."""

__all__ = [
    "backends",
    "engine",
    "exceptions",
    "executor",
    "grammar",
    "ir",
    "parser",
    "planner",
    "reference",
    "shape_checker",
    "simplifier",
    "stats",
]
