"""
Vistagram Backend — Middleware Package
========================================

What:  Cross-cutting concerns applied to every request, plus the auth gates.

Middleware Chain (order matters!):
    Request → [Rate Limit] → [Request ID] → [Logging] → [CORS] → Route Handler

    1. Rate Limit FIRST: throttles /api/auth/login and /api/auth/register
       before any password hashing happens
    2. Request ID: correlation ID for logging and error bodies
    3. Logging: one access line per request, including the authenticated user
    4. CORS: FastAPI's CORSMiddleware with credentials (the refresh cookie)

Auth gates (auth.py) are FastAPI dependencies rather than middleware:
routes opt in per endpoint, required or optional.
"""
