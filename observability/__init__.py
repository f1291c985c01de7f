"""Observability utilities for the exam service."""
from .logger import log_event

__all__ = ["log_event"]
