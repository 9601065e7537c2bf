"""
HTTP routing layer for Ritual.

A FastAPI app exposing the auth and habit services under /api, with every
response wrapped in {"success": bool, "data"?: T, "error"?: str}.

Usage:
    uvicorn ritual.api.app:app --port 8787
"""
