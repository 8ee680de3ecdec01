"""
Job processors: raw upstream records -> StandardizedJob.
"""

from .base import JobProcessor, ProcessedJobResult, StandardizedJob

__all__ = [
    'JobProcessor',
    'ProcessedJobResult',
    'StandardizedJob',
]
