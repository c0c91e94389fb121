"""auto-heal: iterative, sandboxed repair of failing repositories."""

__version__ = "0.1.0"
