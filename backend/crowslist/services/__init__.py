"""
Crowslist Backend — Services Layer
====================================

What:  Business rules, between the routes (HTTP) and the database.

Service Inventory:
    - SessionStore / InMemorySessionStore: server-side sessions by opaque token
    - VerificationService: PENDING → VERIFIED email tokens
    - AuthService: register, login, logout, auth check, verify, resend
    - ListingService: listing CRUD, feed filtering and sorting, ownership
    - ProfileService: read / replace the caller's profile
    - FileService: listing image validation, storage and cleanup

Services take the request's AsyncSession as an argument and hold no
per-request state, so the module-level instances are shared safely.
"""
