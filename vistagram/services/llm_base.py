"""
Vistagram Backend — Abstract LLM Service Interface
=====================================================

What:  Abstract base class for the text-generation provider the seeding job
       talks to: invent a username, describe an image.
Why:   The seeding service depends on this contract only, so tests hand it a
       stub and a different provider can replace Gemini without touching the
       job itself.
Who:   Called by SeedingService; implemented by GeminiService.
When:  Once per synthetic user and once per synthetic post.

Contract:
    - Implementations own their retry logic and error translation
    - Provider-specific errors surface as LLMServiceError or
      CircuitBreakerOpenError; the caller substitutes a fallback value
"""

from abc import ABC, abstractmethod


class LLMService(ABC):
    """Text generation for synthetic content."""

    @abstractmethod
    async def generate_username(self) -> str:
        """
        Produce one plausible social-media username.

        Returns:
            A non-empty username of 3-30 characters (letters, digits,
            underscores, dots).

        Raises:
            LLMServiceError: provider failed or returned something unusable
            CircuitBreakerOpenError: too many recent consecutive failures
        """
        ...

    @abstractmethod
    async def caption_image(self, image_url: str) -> str:
        """
        Describe the image at `image_url` as a short post caption.

        Raises:
            LLMServiceError: download or generation failed
            CircuitBreakerOpenError: too many recent consecutive failures
        """
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """Lightweight reachability check used by GET /health."""
        ...
