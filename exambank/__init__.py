"""Exam bank API: question pools, exam scheduling and exam analytics."""

__version__ = "1.0.0"
