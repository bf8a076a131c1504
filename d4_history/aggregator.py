"""
Historical aggregator

Loads a store's prior audits once per report run and answers every
(section or category, cycle) lookup from that single snapshot.
"""

from collections.abc import Mapping
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from core.config import get_settings
from core.exceptions import MalformedInputError, UpstreamUnavailableError
from core.logging import get_logger
from d0_gateway.base import AuditDataSource
from d2_scoring.engine import rollup_figures

from .models import CycleColumn, HistoricalRecord, HistoricalSeries, HistoricalValue

logger = get_logger(__name__, domain="d4")


def cycle_matches(label: Optional[str], code: str) -> bool:
    """'C1 (Jan/Feb)' matches 'C1'; 'C2' does not"""
    if not label or not code:
        return False
    label_norm = label.strip().upper()
    code_norm = code.strip().upper()
    return label_norm.startswith(code_norm) or code_norm in label_norm


def cycle_codes(count: int) -> List[str]:
    return [f"C{n}" for n in range(1, count + 1)]


def _newest_first(records: Iterable[HistoricalRecord]) -> List[HistoricalRecord]:
    # Stable: equal timestamps keep the source order; undated records go last
    def key(record: HistoricalRecord) -> Tuple[int, float]:
        if record.created is None:
            return (1, 0.0)
        return (0, -record.created.timestamp())

    return sorted(records, key=key)


class HistoricalAggregator:
    """
    Prior cycles of one store, excluding the audit being rendered

    Args:
        records: Historical rows of the store, any order
        exclude_document: Document number of the current audit
        max_cycles: Number of cycle columns (C1..Cn)
        warning: Set when the history could not be loaded
    """

    def __init__(
        self,
        records: Iterable[HistoricalRecord],
        exclude_document: str,
        max_cycles: Optional[int] = None,
        warning: Optional[str] = None,
    ):
        self.exclude_document = exclude_document
        self.max_cycles = max_cycles or get_settings().max_history_cycles
        self.warning = warning
        self.records = _newest_first(r for r in records if r.document_number != exclude_document)
        self._by_cycle: Dict[str, Optional[HistoricalRecord]] = {}

    @classmethod
    async def load(
        cls,
        source: AuditDataSource,
        store_name: str,
        exclude_document: str,
        max_cycles: Optional[int] = None,
    ) -> "HistoricalAggregator":
        """Fetch once; an unreachable source yields an empty history with a warning"""
        try:
            rows = await source.get_store_history(store_name)
        except UpstreamUnavailableError as e:
            warning = f"Historical scores unavailable: {e.message}"
            logger.warning(warning, extra={"store_name": store_name})
            return cls([], exclude_document, max_cycles, warning=warning)

        records = []
        for row in rows:
            if not isinstance(row, Mapping):
                logger.warning(f"Historical row that is not an object skipped for {store_name}")
                continue
            try:
                record = HistoricalRecord.from_row(row)
            except MalformedInputError as e:
                logger.warning(f"Historical row skipped for {store_name}: {e.message}")
                continue
            if not record.document_number:
                logger.warning(f"Historical row without document number skipped for {store_name}")
                continue
            records.append(record)
        return cls(records, exclude_document, max_cycles)

    @property
    def codes(self) -> List[str]:
        return cycle_codes(self.max_cycles)

    def record_for_cycle(self, code: str) -> Optional[HistoricalRecord]:
        """Most recently created record whose cycle label matches the code"""
        if code not in self._by_cycle:
            self._by_cycle[code] = next((r for r in self.records if cycle_matches(r.cycle, code)), None)
        return self._by_cycle[code]

    def columns(self) -> List[CycleColumn]:
        columns = []
        for code in self.codes:
            record = self.record_for_cycle(code)
            columns.append(
                CycleColumn(
                    code=code,
                    document_number=record.document_number if record else None,
                    cycle_label=record.cycle if record else None,
                    year=record.year if record else None,
                )
            )
        return columns

    def section_series(self, section_name: str) -> HistoricalSeries:
        values = []
        for code in self.codes:
            record = self.record_for_cycle(code)
            score = record.section_scores.get(section_name) if record else None
            values.append(HistoricalValue(code=code, percentage=score.percentage if score else None))
        return HistoricalSeries(label=section_name, values=values)

    def category_series(self, category_name: str, section_names: Sequence[str]) -> HistoricalSeries:
        """
        Category percentage per cycle

        Weighted over member sections with earned/max; averaged percentages
        only for cycles where no member has them.
        """
        values = []
        for code in self.codes:
            record = self.record_for_cycle(code)
            if record is None:
                values.append(HistoricalValue(code=code))
                continue
            members = [record.section_scores[name].figures() for name in section_names if name in record.section_scores]
            figures, method = rollup_figures(members)
            values.append(HistoricalValue(code=code, percentage=figures.percentage, method=method))
        return HistoricalSeries(label=category_name, values=values)

    def total_series(self) -> HistoricalSeries:
        values = []
        for code in self.codes:
            record = self.record_for_cycle(code)
            values.append(HistoricalValue(code=code, percentage=record.total_score if record else None))
        return HistoricalSeries(label="Total", values=values)
