"""
Gauge cache fed by the analytics and capacity artifacts.
"""

from .cache import GaugeCache, GaugeCachePublisher

__all__ = ["GaugeCache", "GaugeCachePublisher"]
