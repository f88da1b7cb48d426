"""
chainscope: Solana activity analyst

Turns a free-text question about Solana on-chain activity into a written
risk analysis using FastAPI, LangGraph, Helius/Solscan data providers and an
OpenAI-compatible completion service, with a persisted job queue and audit
trail.

The output is heuristic analysis, not a determination of wrongdoing.
"""

__version__ = "1.0.0"
