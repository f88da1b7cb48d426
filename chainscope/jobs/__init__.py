"""
Job queue module for asynchronous analysis runs.
"""

from chainscope.jobs.queue import AnalysisQueue

__all__ = ["AnalysisQueue"]
