"""Predictive health insights from application logs and infrastructure metrics."""

__version__ = "1.0.0"
