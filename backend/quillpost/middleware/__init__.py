# Middleware package init
"""
Quillpost Backend — Middleware Package
=======================================

Middleware Chain:
    Request → [Request ID] → [Logging] → [GZip] → [CORS] → Route Handler

    1. Request ID first, so every later log line can be correlated
    2. Logging measures the full downstream duration
    3. GZip and CORS are FastAPI's stock middleware
"""
