"""
FastAPI API layer for analysis jobs.
Provides REST endpoints for query submission and job monitoring.
"""

from chainscope.api.router import router

__all__ = ["router"]
