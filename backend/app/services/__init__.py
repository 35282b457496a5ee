from app.services import inquiry_service
from app.services.audit import audit_event

__all__ = [
    "audit_event",
    "inquiry_service",
]
