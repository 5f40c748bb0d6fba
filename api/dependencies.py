"""
FastAPI dependencies
"""

from fastapi import Request
from ingestion.container import ETLServices


def get_services(request: Request) -> ETLServices:
    """Engine services attached to the application at creation."""
    return request.app.state.services
