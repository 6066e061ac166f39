"""ctxpack - token-budgeted context assembly for LLM prompts."""

__version__ = "0.1.0"
