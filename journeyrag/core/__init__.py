"""
Core orchestration: JourneyGraph and its configuration.
"""

from journeyrag.core.journey_graph import IngestionSummary, JourneyConfig, JourneyGraph

__all__ = [
    "IngestionSummary",
    "JourneyConfig",
    "JourneyGraph",
]
