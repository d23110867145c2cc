"""MCP Resources for assessment catalog discovery."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from fastmcp import FastMCP

if TYPE_CHECKING:
    from mindtrack.domains.wellbeing.domain_logic.catalog import AssessmentCatalog


def register_catalog_resources(mcp: FastMCP, catalog: AssessmentCatalog) -> None:
    """Register assessment catalog resources on the MCP server."""

    @mcp.resource("catalog://assessments")
    def assessment_catalog_resource() -> str:
        """Discover all questionnaires, their answer scales, and severity bands."""
        return json.dumps(
            {
                "assessment_count": len(catalog),
                "assessments": [
                    {
                        **definition.summary(),
                        "version": definition.version,
                        "answer_scales": [
                            {"min": s.min_value, "max": s.max_value} for s in definition.scales
                        ],
                    }
                    for definition in catalog.all()
                ],
            },
            indent=2,
        )
