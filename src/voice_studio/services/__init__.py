"""
voice-studio Services Layer.

Business logic between the API/CLI and the generation pipeline.

Components:
    - studio_service.py: StudioService (session facade) and its singleton
    - validators.py: Input validation functions
"""
from .studio_service import StudioService, get_service, reset_service
from .validators import ValidationError

__all__ = [
    "StudioService",
    "ValidationError",
    "get_service",
    "reset_service",
]
