"""MCP tools for longitudinal trend and correlation analysis.

These tools summarize stored assessment results and mood check-ins over a
preset window. Fewer than two points is reported as insufficient data,
not as an error.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from fastmcp import Context, FastMCP

from mindtrack.domains.wellbeing.domain_logic.errors import ValidationError

if TYPE_CHECKING:
    from mindtrack.domains.wellbeing.domain_logic.trend_analyzer import TrendAnalyzer

logger = logging.getLogger(__name__)


def register_trend_tools(mcp: FastMCP, trend_analyzer: TrendAnalyzer) -> None:
    """Register trend analysis tools on the MCP server."""

    @mcp.tool
    async def assessment_trend(
        ctx: Context,
        assessment_type_code: str,
        time_range: str = "quarter",
    ) -> str:
        """Show how your scores on one questionnaire have moved over time.

        Lower scores are better, so a falling average is reported as
        'improving'.

        Args:
            assessment_type_code: Questionnaire code (e.g., 'PHQ9').
            time_range: One of 'week', 'month', 'quarter', 'year', 'all'.
        """
        try:
            trend = trend_analyzer.assessment_trend(
                assessment_type_code, time_range=time_range, now=datetime.now(timezone.utc)
            )
        except ValidationError as exc:
            return json.dumps({"status": "error", "message": str(exc), "field": exc.field})
        return json.dumps(trend, indent=2)

    @mcp.tool
    async def mood_trend(ctx: Context, time_range: str = "month") -> str:
        """Summarize your mood ratings: range, average, median, most common, and trend.

        Args:
            time_range: One of 'week', 'month', 'quarter', 'year', 'all'.
        """
        try:
            trend = trend_analyzer.mood_trend(
                time_range=time_range, now=datetime.now(timezone.utc)
            )
        except ValidationError as exc:
            return json.dumps({"status": "error", "message": str(exc), "field": exc.field})
        return json.dumps(trend, indent=2)

    @mcp.tool
    async def activity_mood_correlation(ctx: Context, time_range: str = "month") -> str:
        """Rank activities by your average mood on check-ins tagged with them.

        Activities with fewer than 3 check-ins are left out.

        Args:
            time_range: One of 'week', 'month', 'quarter', 'year', 'all'.
        """
        try:
            result = trend_analyzer.activity_correlation(
                time_range=time_range, now=datetime.now(timezone.utc)
            )
        except ValidationError as exc:
            return json.dumps({"status": "error", "message": str(exc), "field": exc.field})
        return json.dumps(result, indent=2)
