"""
Next-day scorecard grading and enrichment.

A published forecast is graded once the following session has closed,
using a fixed six-factor rubric (100 points total):

    mode         /25  did the next day match the stated mode?
    buy levels   /20  did S1/S2 hold as support?
    trim levels  /20  were T1-T4 reached?
    risk         /15  were slow zone / kill leverage breached?
    scenario     /10  did the called scenario play out?
    outcome      /10  did the composite zone fit the move?
"""
import logging
from dataclasses import dataclass, field
from datetime import date as date_cls, datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from ..data.download import PriceSource
from ..shared.defaults import DEFAULT_SYMBOL, LEVEL_HOLD_TOLERANCE, LEVEL_TEST_TOLERANCE
from ..shared.errors import InvalidDateError, StateStoreError
from .store import ENRICHABLE_FIELDS, ScorecardRow, ScorecardStore


logger = logging.getLogger(__name__)

Grade = Tuple[int, str]

BULL_THRESHOLD = 2.0
BEAR_THRESHOLD = -2.0


@dataclass
class GradingResult:
    """Outcome of grading one date. Expected failures are reported, not raised."""
    success: bool
    date: str
    error: Optional[str] = None
    skipped: bool = False
    total_grade: Optional[int] = None


@dataclass
class EnrichmentResult:
    success: bool
    date: str
    error: Optional[str] = None
    updated_fields: List[str] = field(default_factory=list)


def parse_forecast_date(date: str) -> date_cls:
    """Parse a YYYY-MM-DD forecast date."""
    try:
        return datetime.strptime(date, '%Y-%m-%d').date()
    except (TypeError, ValueError) as e:
        raise InvalidDateError(f"Invalid forecast date {date!r}, expected YYYY-MM-DD") from e


def next_day_return(close_price: float, close_next: float) -> float:
    """Percent return from the forecast close to the next close, 4 decimals."""
    return round((close_next - close_price) / close_price * 100, 4)


def mode_family(mode: Optional[str]) -> Optional[str]:
    """Map a mode label (e.g. "ORANGE (Improving)", "RED / EJECTED") to its color."""
    if not mode:
        return None
    upper = mode.strip().upper()
    for family in ("GREEN", "YELLOW", "ORANGE", "RED"):
        if upper.startswith(family):
            return family
    return None


def grade_mode(mode: Optional[str], ret: float) -> Grade:
    family = mode_family(mode)

    if family == "GREEN":
        if ret >= 3:
            return 25, "GREEN: strong upside as expected"
        if ret > 0:
            return 20, "GREEN: positive but modest gain"
        if ret > -2:
            return 12, "GREEN: flat when upside was expected"
        return 5, "GREEN: down when the mode called for upside"

    if family == "YELLOW":
        if abs(ret) < 2:
            return 25, f"{mode}: range-bound as expected"
        if ret > 2:
            return 22, f"{mode}: unexpected upside"
        if ret < -5:
            return 10, f"{mode}: large drop not anticipated"
        return 18, f"{mode}: moderate move"

    if family == "ORANGE":
        if ret < -3:
            return 25, f"{mode}: downside risk realized"
        if abs(ret) < 2:
            return 20, f"{mode}: caution held up"
        if ret > 3:
            return 8, f"{mode}: missed upside by being cautious"
        return 15, f"{mode}: mixed outcome"

    if family == "RED":
        if ret < -5:
            return 25, f"{mode}: full defense justified"
        if ret < 0:
            return 20, f"{mode}: caution warranted"
        if ret < 3:
            return 12, f"{mode}: overly defensive, missed a modest gain"
        return 5, f"{mode}: too defensive, missed a strong rally"

    return 12, f"Unknown mode {mode!r}"


def _grade_support(name: str, level: Optional[float], low: float) -> Grade:
    if level is None:
        return 10, f"{name} not set"
    if low > level * LEVEL_TEST_TOLERANCE:
        return 10, f"{name} not tested"
    if low >= level * LEVEL_HOLD_TOLERANCE:
        return 10, f"{name} held"
    return 0, f"{name} broken (low {low:.2f} < {level:.2f})"


def grade_buy_levels(s1: Optional[float], s2: Optional[float], low: float) -> Grade:
    g1, n1 = _grade_support("S1", s1, low)
    g2, n2 = _grade_support("S2", s2, low)
    return g1 + g2, f"{n1}; {n2}"


def grade_trim_levels(levels: Iterable[Optional[float]], high: float) -> Grade:
    declared = [(f"T{i}", level) for i, level in enumerate(levels, start=1) if level is not None]
    if not declared:
        return 10, "No trim levels set"

    grade = 0
    notes = []
    for name, level in declared:
        if high >= level * LEVEL_HOLD_TOLERANCE:
            grade += 5
            notes.append(f"{name} hit")
        else:
            notes.append(f"{name} not reached")
    return grade, "; ".join(notes)


def grade_risk(slow_zone: Optional[float], kill_leverage: Optional[float], low: float) -> Grade:
    if slow_zone is None and kill_leverage is None:
        return 10, "No risk levels set"
    if kill_leverage is not None and low < kill_leverage:
        return 0, f"Kill leverage breached (low {low:.2f} < {kill_leverage:.2f})"
    if slow_zone is not None and low < slow_zone:
        return 10, "Slow zone hit, kill leverage held"
    return 15, "No risk levels breached"


def realized_scenario(ret: float) -> str:
    if ret > BULL_THRESHOLD:
        return "Bull"
    if ret < BEAR_THRESHOLD:
        return "Bear"
    return "Base"


def declared_scenario(primary_scenario: Optional[str]) -> Optional[str]:
    if not primary_scenario:
        return None
    text = primary_scenario.lower()
    if "bull" in text:
        return "Bull"
    if "bear" in text:
        return "Bear"
    return "Base"


def grade_scenario(primary_scenario: Optional[str], ret: float) -> Tuple[int, str, str]:
    """
    Returns:
        Tuple of (grade, note, scenario played out)
    """
    actual = realized_scenario(ret)
    called = declared_scenario(primary_scenario)

    if called is None:
        return 5, f"No scenario called, actual {actual} ({ret:+.1f}%)", actual
    if called == actual:
        return 10, f"Called {called}, got {actual} ({ret:+.1f}%)", actual
    return 3, f"Called {called}, got {actual} ({ret:+.1f}%)", actual


def grade_outcome(zone: Optional[str], ret: float) -> Grade:
    if zone == "FULL_SEND":
        if ret >= 3:
            return 10, f"FULL_SEND: up {ret:.1f}%"
        if ret > 0:
            return 7, f"FULL_SEND: modest gain {ret:.1f}%"
        if ret > -2:
            return 4, f"FULL_SEND: flat {ret:.1f}%"
        return 0, f"FULL_SEND: down {ret:.1f}%"

    if zone == "NEUTRAL":
        if abs(ret) < 2:
            return 10, f"NEUTRAL: range-bound {ret:.1f}%"
        if ret > 2:
            return 7, f"NEUTRAL: upside surprise {ret:.1f}%"
        return 5, f"NEUTRAL: larger move than expected {ret:.1f}%"

    if zone == "CAUTION":
        if ret < -2:
            return 10, f"CAUTION: avoided drop {ret:.1f}%"
        if abs(ret) < 2:
            return 8, f"CAUTION: stayed safe {ret:.1f}%"
        return 3, f"CAUTION: missed upside {ret:.1f}%"

    if zone == "DEFENSIVE":
        if ret < -3:
            return 10, f"DEFENSIVE: protected capital {ret:.1f}%"
        if ret < 0:
            return 8, f"DEFENSIVE: small loss avoided {ret:.1f}%"
        return 2, f"DEFENSIVE: missed rally {ret:.1f}%"

    return 5, f"Unknown zone {zone!r}, return {ret:.1f}%"


def compute_grades(row: ScorecardRow, open_next: float, high_next: float, low_next: float, close_next: float) -> Dict[str, Any]:
    """
    Apply the rubric to a forecast row and the realized next-day bar.

    Returns:
        Dictionary of grade fields ready to persist
    """
    ret = next_day_return(row.close_price, close_next)

    mode_g, mode_n = grade_mode(row.mode, ret)
    buy_g, buy_n = grade_buy_levels(row.s1_level, row.s2_level, low_next)
    trim_g, trim_n = grade_trim_levels(
        (row.t1_level, row.t2_level, row.t3_level, row.t4_level), high_next
    )
    risk_g, risk_n = grade_risk(row.slow_zone, row.kill_leverage, low_next)
    scen_g, scen_n, played_out = grade_scenario(row.primary_scenario, ret)
    out_g, out_n = grade_outcome(row.orb_zone, ret)

    notes = "\n".join([
        f"Mode ({mode_g}/25): {mode_n}",
        f"Buy Levels ({buy_g}/20): {buy_n}",
        f"Trim Levels ({trim_g}/20): {trim_n}",
        f"Risk Mgmt ({risk_g}/15): {risk_n}",
        f"Scenario ({scen_g}/10): {scen_n}",
        f"Outcome ({out_g}/10): {out_n}",
    ])

    return {
        'open_next': open_next,
        'high_next': high_next,
        'low_next': low_next,
        'close_next': close_next,
        'mode_grade': mode_g,
        'buy_levels_grade': buy_g,
        'trim_levels_grade': trim_g,
        'risk_grade': risk_g,
        'scenario_grade': scen_g,
        'outcome_grade': out_g,
        'total_grade': mode_g + buy_g + trim_g + risk_g + scen_g + out_g,
        'grade_notes': notes,
        'scenario_played_out': played_out,
    }


class ScorecardGrader:
    """
    Grades stored forecasts against the next session's OHLC.

    Grading is idempotent per date: an already graded row is a successful
    no-op and never triggers a price fetch.
    """

    def __init__(
        self,
        store: ScorecardStore,
        price_source: PriceSource,
        symbol: str = DEFAULT_SYMBOL,
        scheduler=None,
    ):
        """
        Initialize grader.

        Args:
            store: Scorecard store
            price_source: Source of the next-day bar
            symbol: Instrument symbol
            scheduler: Optional Scheduler; when given, dates whose next
                session hasn't closed yet are reported as not ready
        """
        self.store = store
        self.price_source = price_source
        self.symbol = symbol
        self.scheduler = scheduler

    def grade(self, date: str) -> GradingResult:
        """
        Grade one forecast date against the next session's bar.

        Raises:
            InvalidDateError: If date is not YYYY-MM-DD
        """
        forecast_date = parse_forecast_date(date)
        row = self.store.get(date)
        if row is None:
            return GradingResult(success=False, date=date, error=f"No scorecard found for {date}")

        if row.is_graded:
            logger.info(f"Scorecard for {date} already graded ({row.total_grade}/100), skipping")
            return GradingResult(success=True, date=date, skipped=True, total_grade=row.total_grade)

        if self.scheduler is not None and not self.scheduler.is_next_session_closed(
            forecast_date
        ):
            return GradingResult(success=False, date=date, error=f"Next session after {date} has not closed yet")

        try:
            bar = self.price_source.fetch_next_day_ohlc(self.symbol, date)
        except Exception as e:
            logger.error(f"Next-day OHLC fetch for {date} failed: {e}")
            bar = None
        if bar is None:
            return GradingResult(success=False, date=date, error=f"Could not fetch next-day OHLC for {date}")

        grades = compute_grades(
            row,
            open_next=float(bar['Open']),
            high_next=float(bar['High']),
            low_next=float(bar['Low']),
            close_next=float(bar['Close']),
        )
        grades['updated_at'] = datetime.now().isoformat()

        try:
            self.store.update_fields(date, grades)
        except StateStoreError as e:
            return GradingResult(success=False, date=date, error=f"Failed to save grades: {e}")

        logger.info(f"Graded {date}: {grades['total_grade']}/100")
        for line in grades['grade_notes'].splitlines():
            logger.debug(f"  {line}")
        return GradingResult(success=True, date=date, total_grade=grades['total_grade'])

    def grade_all(self, limit: Optional[int] = 50) -> List[GradingResult]:
        """Grade every ungraded row, newest first."""
        dates = self.store.list_ungraded(limit)
        if not dates:
            logger.info("No scorecards need grading")
            return []

        results = []
        for d in dates:
            try:
                results.append(self.grade(d))
            except InvalidDateError as e:
                results.append(GradingResult(success=False, date=d, error=str(e)))
        ok = sum(1 for r in results if r.success)
        logger.info(f"Graded {ok}/{len(results)} scorecards")
        for r in results:
            if not r.success:
                logger.warning(f"  {r.date}: {r.error}")
        return results


def enrich_scorecard(store: ScorecardStore, date: str, values: Dict[str, Any]) -> EnrichmentResult:
    """
    Set context fields on a forecast row.

    Only fields in ENRICHABLE_FIELDS are accepted; grade fields are never
    touched. Failures are reported in the result.
    """
    rejected = [k for k in values if k not in ENRICHABLE_FIELDS]
    if rejected:
        return EnrichmentResult(success=False, date=date, error=f"Fields not enrichable: {rejected}")

    if store.get(date) is None:
        return EnrichmentResult(success=False, date=date, error=f"No scorecard row found for {date}")

    updates = dict(values)
    updates['updated_at'] = datetime.now().isoformat()
    try:
        store.update_fields(date, updates)
    except StateStoreError as e:
        logger.error(f"Enrichment for {date} failed: {e}")
        return EnrichmentResult(success=False, date=date, error=f"Failed to update scorecard: {e}")

    logger.info(f"Enriched scorecard for {date}: {', '.join(sorted(values))}")
    return EnrichmentResult(success=True, date=date, updated_fields=sorted(values))


def batch_enrich_scorecards(store: ScorecardStore, enrichments: Dict[str, Dict[str, Any]]) -> List[EnrichmentResult]:
    """Enrich several dates; one failure does not stop the others."""
    return [enrich_scorecard(store, date, values) for date, values in enrichments.items()]
