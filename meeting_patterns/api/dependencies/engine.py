# meeting_patterns/api/dependencies/engine.py
from datetime import timedelta

from meeting_patterns.core.config import get_settings
from meeting_patterns.services.change_preview import ChangePreviewBuilder
from meeting_patterns.services.dst_risk import DstRiskAnalyzer
from meeting_patterns.services.pattern_expander import PatternExpander


def get_expander() -> PatternExpander:
    settings = get_settings()
    return PatternExpander(max_months=settings.MAX_EXPANSION_MONTHS)


def get_dst_analyzer() -> DstRiskAnalyzer:
    return DstRiskAnalyzer()


def get_preview_builder() -> ChangePreviewBuilder:
    """
    Dependency that wires the preview engine from application settings.

    The engine classes never read settings themselves; this is the one
    place tunables flow in.
    """
    settings = get_settings()
    return ChangePreviewBuilder(
        expander=get_expander(),
        dst_analyzer=get_dst_analyzer(),
        overlap_window=timedelta(minutes=settings.OVERLAP_WINDOW_MINUTES),
        large_removal_threshold=settings.LARGE_REMOVAL_WARNING_THRESHOLD,
        large_change_threshold=settings.LARGE_CHANGE_WARNING_THRESHOLD,
    )
