"""
provdata_api — FastAPI service for map composition, connection queries and
fact ingestion.

Start with:
    uvicorn provdata_api.app:app --reload --port 8000
"""

__version__ = "0.1.0"
