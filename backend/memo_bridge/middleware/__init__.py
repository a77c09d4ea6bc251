# Middleware package init
"""
Memo Bridge Backend — Middleware Package
=========================================

Middleware Chain:
    Request → [Request ID] → [Logging] → Route Handler

    Request ID runs first so the access log line and every service log line
    of the same request share one id.
"""
