"""Multi-step LLM agents with tools, planning and a restricted Python interpreter."""

__version__ = "0.1.2"