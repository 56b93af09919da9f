"""Init file for the question-answering services."""

from .extractor import extract
from .normalizer import normalize
from .reconcile import reconcile


__all__ = [
    "extract",
    "normalize",
    "reconcile",
]
