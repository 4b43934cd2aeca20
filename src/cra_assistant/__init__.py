"""Clinical-trial extraction assistant built around a resilient LLM gateway."""

__version__ = "0.1.0"
