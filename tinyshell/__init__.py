"""A tiny Unix shell with job control, a trace runner, a comparison driver and test jobs."""

__version__ = "0.1.0"
__all__ = ["__version__"]