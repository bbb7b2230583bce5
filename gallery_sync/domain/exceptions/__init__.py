from gallery_sync.domain.exceptions.domain_exceptions import (
    DomainException,
    DrainHookFailure,
    PersistFailure,
    ResourceNotFoundError,
    UploadFailure,
)

__all__ = [
    "DomainException",
    "DrainHookFailure",
    "PersistFailure",
    "ResourceNotFoundError",
    "UploadFailure",
]
