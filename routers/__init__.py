"""
Routers package

┌─────────────────────────┬───────────────────────────────────────────────┐
│ Router                  │ Endpoints                                     │
├─────────────────────────┼───────────────────────────────────────────────┤
│ analytics_router        │ /analytics/metrics, efficiency, usage,        │
│                         │ retirement, forecast, fuel, maintenance,      │
│                         │ presets                                       │
└─────────────────────────┴───────────────────────────────────────────────┘
"""

from .analytics_router import router as analytics_router

__all__ = ["analytics_router", "include_all_routers"]


def include_all_routers(app):
    """Include every router in the FastAPI app."""
    app.include_router(analytics_router)
