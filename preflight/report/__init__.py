from .aggregator import summarize

__all__ = ["summarize"]
