"""
FastAPI REST API Layer for voice-studio.

    - routes.py: Session, segment, batch, export, credential and quota endpoints
    - schemas.py: Request/response Pydantic models
    - dependencies.py: FastAPI dependency injection
"""
