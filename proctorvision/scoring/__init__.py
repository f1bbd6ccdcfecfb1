"""Scoring modules"""

from .integrity_scorer import IntegrityScorer, compute_integrity_score

__all__ = ["IntegrityScorer", "compute_integrity_score"]
