"""Coin-toss I Ching divination with rule-based and LLM interpretation tiers."""

__version__ = "0.1.0"
