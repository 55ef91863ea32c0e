"""
Clockwork Wearables API Server

FastAPI application exposing wearable OAuth connections, sync and daily
records on top of clockwork_connector.

Modules:
- app: routes, error mapping and the ASGI ``app`` served by uvicorn
"""

__version__ = "0.1.0"
