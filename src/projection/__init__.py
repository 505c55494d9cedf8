"""
FireChain - Projections
Read-only incident listings for clients.
"""

from src.projection.query_service import IncidentListing, ProjectionService

__all__ = ["ProjectionService", "IncidentListing"]
