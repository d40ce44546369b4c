# API routes
from src.api.routes import subscription

__all__ = ["subscription"]
