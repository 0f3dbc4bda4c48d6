"""Streaming tempo (BPM) estimation from live mono audio blocks."""

from .analyzer import AnalyzerOptions, AnalyzerPhase, BpmEvent, BpmResult, RealTimeBpmAnalyzer
from .tempo import TempoCandidate

__all__ = [
    "analyzer",
    "app",
    "capture",
    "peaks",
    "preprocess",
    "processor",
    "service",
    "tempo",
    "thresholds",
    "AnalyzerOptions",
    "AnalyzerPhase",
    "BpmEvent",
    "BpmResult",
    "RealTimeBpmAnalyzer",
    "TempoCandidate",
]

__version__ = "0.1.0"
