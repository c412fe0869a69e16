"""
Crowslist Backend — API Schemas
=================================

Pydantic models for request bodies and response payloads.

Naming convention on the wire:
    Request bodies use camelCase keys (firstName, verificationCode), which
    is what the browser frontend sends. Row-shaped responses (listings,
    profile) keep the snake_case column names the frontend already renders;
    envelope responses (register, login, auth check) use camelCase.
"""
