"""
D4 History - prior-cycle comparison and repetitive finding detection
"""
from .aggregator import HistoricalAggregator, cycle_codes, cycle_matches
from .models import NO_DATA, CycleColumn, HistoricalRecord, HistoricalSectionScore, HistoricalSeries, HistoricalValue
from .repetitive import RepetitiveFinding, RepetitiveFindingIndex

__all__ = [
    "NO_DATA",
    "CycleColumn",
    "HistoricalAggregator",
    "HistoricalRecord",
    "HistoricalSectionScore",
    "HistoricalSeries",
    "HistoricalValue",
    "RepetitiveFinding",
    "RepetitiveFindingIndex",
    "cycle_codes",
    "cycle_matches",
]
