"""Next-day grading of published forecasts."""
from .scorecard import (
    GradingResult,
    EnrichmentResult,
    ScorecardGrader,
    compute_grades,
    enrich_scorecard,
    batch_enrich_scorecards,
)
from .store import ScorecardRow, ScorecardStore, ENRICHABLE_FIELDS

__all__ = [
    'GradingResult',
    'EnrichmentResult',
    'ScorecardGrader',
    'compute_grades',
    'enrich_scorecard',
    'batch_enrich_scorecards',
    'ScorecardRow',
    'ScorecardStore',
    'ENRICHABLE_FIELDS',
]
