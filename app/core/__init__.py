"""
Core Application - shared infrastructure for the conference backend.

Nothing in this package knows about conferences or payments; the
domain apps (conferences, payments) build on it.

Models (import from core.models):
    - BaseModel: Abstract model with created_at / updated_at

Services (import from core.services):
    - BaseService: Base class for service layer classes
    - ServiceResult: Success/failure wrapper returned by services

Exceptions (import from core.exceptions):
    - BaseApplicationError: Base exception carrying an error code
    - ValidationError, NotFoundError, ConflictError, ExternalServiceError

Protocols (import from core.protocols):
    - Named: Capability of catalogue options that expose a display name

Views (import from core.views):
    - health_check: Liveness endpoint used by the load balancer
"""
