"""
Shared helpers.
"""
from app.utils.logging import get_logger

__all__ = ["get_logger"]
