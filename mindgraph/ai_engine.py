"""
MindGraph — AI Engine
=====================
The reasoning boundary every pipeline stage talks through:
  - Groq + Gemini calls with automatic failover (hybrid mode)
  - A shared rate gate spacing out every outgoing call
  - Provider configuration checks

Stages never talk to a provider SDK directly; they receive a
``ReasoningClient`` and a ``RateGate`` and acquire the gate before each call.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, List, Optional, Tuple

import google.generativeai as genai
from groq import AsyncGroq

from mindgraph.core.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


class ReasoningError(RuntimeError):
    """Raised when no configured provider produced a response."""


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# RATE GATE
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class RateGate:
    """
    Minimum-delay throttle shared by all reasoning call sites.

    The next slot is reserved before sleeping, so two coroutines on the same
    loop acquiring back to back are spaced ``min_delay`` apart.
    """

    def __init__(
        self,
        min_delay: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.min_delay = max(0.0, float(min_delay))
        self.last_call: Optional[float] = None
        self._clock = clock
        self._sleep = sleep

    async def acquire(self) -> float:
        """Wait until a call is allowed. Returns the seconds waited."""
        now = self._clock()
        wait = 0.0
        if self.last_call is not None:
            wait = max(0.0, self.last_call + self.min_delay - now)
        self.last_call = now + wait
        if wait > 0:
            logger.debug(f"[RATE-GATE] Waiting {wait:.3f}s before next call")
            await self._sleep(wait)
        return wait


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# CLIENT INTERFACE
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class ReasoningClient(ABC):
    """Text-in, text-out boundary to a language model."""

    @property
    def is_configured(self) -> bool:
        return True

    @abstractmethod
    async def complete(
        self,
        prompt: str,
        *,
        temperature: float = 0.2,
        max_tokens: int = 1500,
        json_mode: bool = True,
    ) -> str:
        """Send one prompt and return the raw response text."""


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# HYBRID CALL WITH FAILOVER
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class HybridReasoningClient(ReasoningClient):
    """
    Groq (Llama 3) and Gemini behind one ``complete`` call.
    In 'hybrid' mode the primary provider is tried first, then the other.
    """

    def __init__(self, config: Optional[Settings] = None, primary: str = "gemini"):
        self.config = config or default_settings
        self.primary = primary
        self.groq_client: Optional[AsyncGroq] = None

        logger.info(f"[AI‑ENGINE] Provider mode: {self.config.AI_PROVIDER}")

        if self.config.GROQ_API_KEY:
            self.groq_client = AsyncGroq(api_key=self.config.GROQ_API_KEY)
            logger.info("[AI‑ENGINE] ✓ Groq client ready")
        else:
            logger.warning("[AI‑ENGINE] ✗ Groq API key missing")

        if self.config.GOOGLE_API_KEY:
            genai.configure(api_key=self.config.GOOGLE_API_KEY, transport="rest")
            logger.info("[AI‑ENGINE] ✓ Gemini client ready")
        else:
            logger.warning("[AI‑ENGINE] ✗ Google API key missing")

    @property
    def is_configured(self) -> bool:
        provider = self.config.AI_PROVIDER
        has_groq = self.groq_client is not None
        has_gemini = bool(self.config.GOOGLE_API_KEY)
        if provider == "groq":
            return has_groq
        if provider == "gemini":
            return has_gemini
        return has_groq or has_gemini

    async def _call_groq(self, prompt: str, temperature: float, max_tokens: int, json_mode: bool) -> str:
        """Call Groq, optionally in JSON-object mode."""
        if not self.groq_client:
            raise ValueError("Groq API Key missing")

        logger.info(f"[AI‑ENGINE] Calling Groq ({self.config.GROQ_MODEL})...")
        completion = await self.groq_client.chat.completions.create(
            model=self.config.GROQ_MODEL,
            messages=[{"role": "user", "content": prompt}],
            response_format={"type": "json_object"} if json_mode else None,
            temperature=temperature,
            max_tokens=max_tokens,
        )
        result = completion.choices[0].message.content
        logger.info("[AI‑ENGINE] ✓ Groq call succeeded")
        return result or ""

    async def _call_gemini(self, prompt: str, temperature: float, max_tokens: int, json_mode: bool) -> str:
        """Call Gemini; the blocking SDK call runs in a worker thread."""
        if not self.config.GOOGLE_API_KEY:
            raise ValueError("Google API Key missing")

        logger.info(f"[AI‑ENGINE] Calling Gemini ({self.config.GEMINI_MODEL})...")
        generation_config = {"temperature": temperature, "max_output_tokens": max_tokens}
        if json_mode:
            generation_config["response_mime_type"] = "application/json"

        model = genai.GenerativeModel(
            model_name=self.config.GEMINI_MODEL,
            generation_config=generation_config,
        )
        response = await asyncio.to_thread(model.generate_content, prompt)
        logger.info("[AI‑ENGINE] ✓ Gemini call succeeded")
        return response.text

    def _callers(self) -> List[Tuple[str, Callable]]:
        provider = self.config.AI_PROVIDER
        if provider == "groq":
            return [("Groq", self._call_groq)]
        if provider == "gemini":
            return [("Gemini", self._call_gemini)]
        if self.primary == "groq":
            return [("Groq", self._call_groq), ("Gemini", self._call_gemini)]
        return [("Gemini", self._call_gemini), ("Groq", self._call_groq)]

    async def complete(
        self,
        prompt: str,
        *,
        temperature: float = 0.2,
        max_tokens: int = 1500,
        json_mode: bool = True,
    ) -> str:
        last_error = None
        for name, caller in self._callers():
            try:
                return await caller(prompt, temperature, max_tokens, json_mode)
            except Exception as e:
                last_error = e
                logger.warning(f"[AI‑ENGINE] {name} failed: {str(e)[:200]}. Trying next...")

        raise ReasoningError(f"All AI providers failed. Last error: {last_error}")
