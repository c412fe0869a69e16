"""
Crowslist Backend — API Routes Package
========================================

Route Inventory:
    - auth.py:      POST /api/register, /api/login, /api/logout,
                    /api/verify-email, /api/verify-email/resend
                    GET  /api/auth/check
    - listings.py:  GET  /api/listings, /api/listings/my, /api/listings/{id}
                    POST /api/listings
                    PUT  /api/listings/{id}, /api/listings/{id}/status
                    DELETE /api/listings/{id}
    - profile.py:   GET/PUT /api/profile
    - health.py:    GET  /health

Routes stay thin: read the request, call a service, shape the response.
"""
