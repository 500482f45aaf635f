"""
sevensons - group chat with historical and literary personas backed by LLMs.
"""

__version__ = "0.3.0"

__all__ = ["__version__"]
