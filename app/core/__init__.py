"""
Core Application - Infrastructure & Base Classes

Generic, reusable base classes with no chat-specific logic.

Models (import from core.models):
    - BaseModel: Abstract model with timestamps (created_at, updated_at)

Model Mixins (import from core.model_mixins):
    - SoftDeleteMixin: Soft delete support (is_deleted, deleted_at)

Services (import from core.services):
    - BaseService: Base class for service layer
    - ServiceResult: Tagged success/failure result
    - FailureKind: NOT_FOUND, DENIED, CONFLICT, INVALID

Decorators (import from core.decorators):
    - retry_on_conflict: Transaction wrapper with one automatic retry
"""
