"""
Crowslist Backend — Middleware Package
========================================

Middleware Chain:
    Request → [Request ID] → [Logging] → [Rate Limit] → [GZip] → [CORS] → Route

    1. Request ID: correlation id for logs, error bodies and X-Request-ID
    2. Logging:    one access-log line per request, 429s included
    3. Rate Limit: per-IP window on the credential endpoints only

Responses pass back through the chain in reverse.
"""
