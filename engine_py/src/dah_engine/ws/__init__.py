"""
WebSocket gateway and event models for the party card game.
"""

from .events import *
from .server import ConnectionManager, GameGateway

__all__ = ["ConnectionManager", "GameGateway"]
