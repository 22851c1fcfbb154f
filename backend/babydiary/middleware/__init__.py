# Middleware package init
"""
Baby Diary Backend — Middleware Package
=========================================

Middleware Chain (request direction):
    Request → [Request ID] → [Logging] → [GZip] → [CORS] → Route Handler

    Request ID runs first so the access log line and every handler log
    share the same correlation id. Responses travel the chain in reverse,
    which is when X-Request-ID is attached and the duration is measured.
"""
