from .service import CaseGenService

__all__ = ["CaseGenService"]
