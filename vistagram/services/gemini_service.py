"""
Vistagram Backend — Google Gemini Service Implementation
==========================================================

What:  Concrete LLM service backed by Google Gemini: invents usernames for
       synthetic accounts and writes captions for synthetic posts.
How:   Prompts go to Gemini through google-generativeai; images are fetched
       with httpx and sent inline as bytes. Every call is wrapped in tenacity
       retry and a circuit breaker.
Who:   Instantiated once at import; called by SeedingService.
When:  During a database population run (cron or manual trigger).

Resilience Strategy:
    1. Tenacity retry with exponential backoff + jitter for transient failures
    2. Circuit breaker so a dead provider costs one fast failure per call
       instead of a full retry cycle per synthetic user/post
    3. Every failure surfaces as LLMServiceError / CircuitBreakerOpenError;
       the seeding job substitutes its fallback value
"""

import json
import logging
import re
import time
import uuid
from typing import Any, List, Optional

import google.generativeai as genai
import httpx
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential_jitter,
    retry_if_exception_type,
    before_sleep_log,
    RetryError,
)

from vistagram.config import settings
from vistagram.exceptions import LLMServiceError, CircuitBreakerOpenError
from vistagram.services.llm_base import LLMService

logger = logging.getLogger(__name__)

USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9_.]{3,30}$")
MAX_CAPTION_LENGTH = 2200


# ══════════════════════════════════════════════════════════════════════════
# Circuit Breaker Implementation
# ══════════════════════════════════════════════════════════════════════════

class CircuitBreaker:
    """
    Circuit breaker guarding the Gemini calls.

    State Machine:
        CLOSED (normal operation)
            → On failure: increment failure_count
            → When failure_count >= threshold: transition to OPEN

        OPEN (rejecting all requests)
            → All calls raise CircuitBreakerOpenError immediately
            → After recovery_timeout seconds: transition to HALF_OPEN

        HALF_OPEN (testing recovery)
            → Allow ONE request through
            → On success: transition to CLOSED (reset failure_count)
            → On failure: transition back to OPEN (reset timer)

    Not thread-safe; all callers share the single event loop.
    """

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"

    def __init__(self, failure_threshold: int = 5, recovery_timeout: int = 60):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time: Optional[float] = None

    def can_execute(self) -> bool:
        """
        Returns True when a call may proceed.

        Raises:
            CircuitBreakerOpenError if OPEN and the recovery timeout hasn't elapsed.
        """
        if self.state == self.CLOSED:
            return True

        if self.state == self.OPEN:
            elapsed = time.time() - (self.last_failure_time or 0)
            if elapsed >= self.recovery_timeout:
                logger.info(
                    "Circuit breaker transitioning to HALF_OPEN after %.1fs",
                    elapsed,
                )
                self.state = self.HALF_OPEN
                return True
            remaining = int(self.recovery_timeout - elapsed)
            raise CircuitBreakerOpenError(recovery_time=remaining)

        return True

    def record_success(self) -> None:
        if self.state == self.HALF_OPEN:
            logger.info("Circuit breaker transitioning to CLOSED (service recovered)")
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time = None

    def record_failure(self) -> None:
        self.failure_count += 1
        self.last_failure_time = time.time()

        if self.state == self.HALF_OPEN:
            logger.warning("Circuit breaker returning to OPEN (test request failed)")
            self.state = self.OPEN
        elif self.failure_count >= self.failure_threshold:
            logger.warning(
                "Circuit breaker OPENING after %d consecutive failures",
                self.failure_count,
            )
            self.state = self.OPEN


# ══════════════════════════════════════════════════════════════════════════
# Gemini Service
# ══════════════════════════════════════════════════════════════════════════

class GeminiService(LLMService):
    """
    Error Handling Chain:
        API call fails → tenacity retries (RETRY_MAX_ATTEMPTS with backoff)
        → All retries fail → record circuit breaker failure → LLMServiceError
        → Threshold reached → further calls rejected instantly
        → Recovery timeout → one test call (HALF_OPEN)
    """

    USERNAME_PROMPT = (
        "Generate a realistic username for a social media user. "
        "Use only letters, digits, underscores or dots, 3 to 30 characters. "
        'Return only JSON like {"username": "..."}'
    )

    CAPTION_PROMPT = (
        "Generate a short, creative social media caption for this image. "
        "Return only the caption text, at most two sentences, emojis allowed."
    )

    def __init__(self):
        if settings.gemini_api_key:
            genai.configure(api_key=settings.gemini_api_key)

        self.model = genai.GenerativeModel(settings.gemini_model)
        self.circuit_breaker = CircuitBreaker(
            failure_threshold=settings.cb_failure_threshold,
            recovery_timeout=settings.cb_recovery_timeout,
        )

        logger.info(
            "GeminiService initialized with model=%s, "
            "circuit_breaker(threshold=%d, recovery=%ds)",
            settings.gemini_model,
            settings.cb_failure_threshold,
            settings.cb_recovery_timeout,
        )

    # ── Public operations ─────────────────────────────────────────────────

    async def generate_username(self) -> str:
        text = await self._guarded_generate([self.USERNAME_PROMPT], "username")
        username = self.parse_username(text)
        if username is None:
            raise LLMServiceError(
                message="Gemini returned an unusable username.",
                context={"response": text[:200]},
            )
        return username

    async def caption_image(self, image_url: str) -> str:
        image_part = await self.fetch_image_part(image_url)
        text = await self._guarded_generate([self.CAPTION_PROMPT, image_part], "caption")
        caption = text.strip().strip('"').strip()
        if not caption:
            raise LLMServiceError(message="Gemini returned an empty caption.")
        return caption[:MAX_CAPTION_LENGTH]

    # ── Helpers ───────────────────────────────────────────────────────────

    @staticmethod
    def parse_username(text: str) -> Optional[str]:
        """
        Pull the username out of a model reply.

        Accepts the requested JSON object (optionally inside a ``` fence) or a
        bare token. Returns None when nothing valid is found.
        """
        cleaned = text.strip()
        if cleaned.startswith("```"):
            cleaned = cleaned.strip("`")
            if cleaned.lower().startswith("json"):
                cleaned = cleaned[4:]
            cleaned = cleaned.strip()

        candidate: Any = cleaned
        try:
            parsed = json.loads(cleaned)
            if isinstance(parsed, dict):
                candidate = parsed.get("username")
        except ValueError:
            pass

        if not isinstance(candidate, str):
            return None
        candidate = candidate.strip().lstrip("@")
        if USERNAME_PATTERN.match(candidate):
            return candidate
        return None

    async def fetch_image_part(self, image_url: str) -> dict:
        """Download the image and wrap it as an inline Gemini content part."""
        try:
            async with httpx.AsyncClient(
                timeout=settings.gemini_timeout, follow_redirects=True
            ) as client:
                response = await client.get(image_url)
                response.raise_for_status()
        except httpx.HTTPError as e:
            raise LLMServiceError(
                message="Could not download image for captioning.",
                context={"url": image_url, "error": str(e)},
            )

        mime_type = response.headers.get("content-type", "image/jpeg").split(";")[0].strip()
        return {"mime_type": mime_type, "data": response.content}

    async def _guarded_generate(self, parts: List[Any], purpose: str) -> str:
        """
        Circuit breaker check, retried call, breaker bookkeeping.

        Raises:
            CircuitBreakerOpenError: circuit is open
            LLMServiceError: Gemini failed after all retry attempts
        """
        request_id = str(uuid.uuid4())[:8]
        self.circuit_breaker.can_execute()

        logger.info("[%s] Gemini %s request", request_id, purpose)
        try:
            result = await self._call_gemini_with_retry(parts, request_id)
            self.circuit_breaker.record_success()
            return result
        except RetryError as e:
            self.circuit_breaker.record_failure()
            logger.error(
                "[%s] All Gemini retries exhausted: %s",
                request_id,
                str(e.last_attempt.exception()) if e.last_attempt else "Unknown error",
            )
            raise LLMServiceError(
                message="Text generation failed after multiple attempts.",
                retry_after=self.circuit_breaker.recovery_timeout,
                context={"request_id": request_id, "purpose": purpose},
            )
        except Exception as e:
            self.circuit_breaker.record_failure()
            logger.error("[%s] Gemini %s failed: %s", request_id, purpose, str(e))
            raise LLMServiceError(
                message="An unexpected error occurred during text generation.",
                context={"request_id": request_id, "error_type": type(e).__name__},
            )

    @retry(
        # Gemini SDK raises generic exceptions for API errors
        retry=retry_if_exception_type(Exception),
        stop=stop_after_attempt(settings.retry_max_attempts),
        wait=wait_exponential_jitter(
            initial=settings.retry_min_wait,
            max=settings.retry_max_wait,
            jitter=1,
        ),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async def _call_gemini_with_retry(self, parts: List[Any], request_id: str) -> str:
        start_time = time.time()
        try:
            response = await self.model.generate_content_async(
                parts,
                request_options={"timeout": settings.gemini_timeout},
            )
            text = response.text.strip() if response.text else ""
            logger.info(
                "[%s] Gemini call completed in %.0fms, %d chars",
                request_id,
                (time.time() - start_time) * 1000,
                len(text),
            )
            return text
        except Exception as e:
            logger.warning(
                "[%s] Gemini API call failed after %.0fms: %s",
                request_id,
                (time.time() - start_time) * 1000,
                str(e),
            )
            raise

    async def health_check(self) -> bool:
        """Lists models (no token cost) to verify key and connectivity."""
        if not settings.gemini_api_key:
            return False
        try:
            models = genai.list_models()
            model_names = [m.name for m in models]
            target = f"models/{settings.gemini_model}"
            if target not in model_names:
                logger.warning("Configured model %s not found in available models", target)
            return True
        except Exception as e:
            logger.warning("Gemini health check failed: %s", str(e))
            return False


# Shared so the circuit breaker state spans every seeding run
gemini_service = GeminiService()
