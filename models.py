"""Data structures used across the application."""

from __future__ import annotations

from typing import List, Literal, Optional, TypedDict


class Candidate(TypedDict):
    """One generated CDN URL plus the labels used to group it."""

    url: str
    region: str
    category: str
    priority: bool


class ValidatedCandidate(Candidate):
    """A candidate that went through a probe."""

    is_working: bool


class ProbeResult(TypedDict):
    """Structured result returned after probing a single URL."""

    url: str
    status: Optional[str]
    http_status: Optional[int]
    content_type: Optional[str]
    error: Optional[str]


class ValidationOutcome(TypedDict):
    """Terminal report of one validation run."""

    status: Literal["completed", "cancelled"]
    results: List[ValidatedCandidate]
    processed: int
    total: int


class CategoryConfig(TypedDict):
    """A selectable category code and its display label."""

    code: str
    label: str


__all__ = [
    "Candidate",
    "ValidatedCandidate",
    "ProbeResult",
    "ValidationOutcome",
    "CategoryConfig",
]
