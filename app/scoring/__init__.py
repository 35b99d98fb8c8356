"""Scoring module for the full diagnostic.

Implements the deterministic engines of the diagnostic:
  answers → ProcessScorer (score + band) → CauseEngine (LOW gaps)
  → FindingsGenerator (six-pack); answers → ActionFitEngine (suggestions)
"""
