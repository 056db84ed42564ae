"""YouTube title improver: event-driven job pipeline"""

__version__ = "1.0.0"
