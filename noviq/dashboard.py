import logging
from typing import Any, Dict, Iterable, Optional

from noviq.errors import MalformedResponseError
from noviq.llm_service import parse_analysis
from noviq.schemas import ChartSeries, DashboardCard, DashboardData

logger = logging.getLogger(__name__)


def debug_flags(record: Dict[str, Any]) -> Dict[str, bool]:
    analysis = record.get("analysis") or {}
    offline = analysis.get("offline_analysis") if isinstance(analysis, dict) else None
    return {
        "hasAnalysis": bool(analysis),
        "hasOfflineAnalysis": bool(offline),
        "hasSummary": bool(isinstance(offline, dict) and offline.get("executive_summary")),
    }


def build_card(record: Dict[str, Any]) -> DashboardCard:
    """Chart-ready view of one serialized analysis record.

    Records whose analysis no longer validates still get a card, just
    without scores or charts.
    """
    card = DashboardCard(
        id=record.get("_id"),
        business_idea=record.get("businessIdea", ""),
        created_at=record.get("createdAt"),
    )
    try:
        payload = parse_analysis(record.get("analysis"))
    except MalformedResponseError:
        logger.warning(f"Analysis {card.id} has no usable offline analysis")
        return card

    offline = payload.offline_analysis
    card.viability_score = offline.executive_summary.viability_score
    card.headline = offline.executive_summary.headline
    card.key_points = offline.executive_summary.key_points

    if offline.radar_chart:
        card.radar = ChartSeries(labels=offline.radar_chart.categories, values=offline.radar_chart.values, unit="%")
    if offline.revenue_projection:
        rp = offline.revenue_projection
        card.revenue = ChartSeries(labels=rp.timeline, values=rp.values, unit=rp.unit)
    if offline.startup_costs:
        sc = offline.startup_costs
        card.costs = ChartSeries(labels=sc.categories, values=sc.values, unit=sc.unit)
        card.total_startup_cost = sum(sc.values)
    if offline.timeline:
        card.total_months = sum(offline.timeline.durations)
    return card


def build_dashboard(user_id: Optional[str], records: Iterable[Dict[str, Any]]) -> DashboardData:
    cards = [build_card(record) for record in records]
    scores = [c.viability_score for c in cards if c.viability_score is not None]
    return DashboardData(
        user_id=user_id,
        count=len(cards),
        average_viability=round(sum(scores) / len(scores), 1) if scores else None,
        analyses=cards,
    )
