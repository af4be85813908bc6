"""Serverless entry point.

Mangum translates API Gateway HTTP API (v2) events into ASGI, so the same
FastAPI app backs both the long-running server and the function deployment
the scanner UI calls at /api/gemini.
"""

from mangum import Mangum

from cardscan_gateway.main import app

handler = Mangum(app, lifespan="off")
