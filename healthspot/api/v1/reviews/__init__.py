"""Provider reviews and AI review analysis."""

from healthspot.api.v1.reviews.router import router

__all__ = ["router"]
