"""
Top-level package for the course overlap engine.

This package scores a query course embedding against a catalogued
corpus of course embeddings, remaps raw cosine similarity onto a
calibrated 0-100 overlap scale and returns a deterministically ranked
list of overlapping courses.  Embedding generation and persistence are
handled by external collaborators; the package only consumes their
output.  There are no side-effects on import and each module can be
used on its own for ad-hoc debugging.
"""
from __future__ import annotations

__version__ = "0.1.0"
