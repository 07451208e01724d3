"""
HTTP and WebSocket surface for the trading engine.
"""
from .main import create_app

__all__ = ['create_app']
