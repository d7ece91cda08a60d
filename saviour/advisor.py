"""
Tactical advice from a text-generation model.

Portals call this for first-aid steps, dispatch strategy and route briefings.
It is a convenience only: every method answers with a fixed fallback text
when no API key is set or the model call fails, and the grid sync code never
imports it.
"""

import logging
import os
from typing import Iterator, Optional

from saviour.grid.models import Location

logger = logging.getLogger(__name__)

QUICK_MODEL = "claude-3-5-haiku-20241022"
STRATEGY_MODEL = "claude-sonnet-4-20250514"

QUICK_FALLBACK = "Remain calm. Professional help is en-route."
STRATEGY_FALLBACK = (
    "Command strategy offline. Proceed with standard clearance protocols."
)
TRAFFIC_FALLBACK = "Traffic data offline."
CHAT_FALLBACK = "First-aid assistant offline. Keep the patient still and call for help."


class TacticalAdvisor:
    """Thin wrapper around the Anthropic messages API."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        timeout: float = 30.0,
        client=None,
    ):
        """
        Initialize the advisor.

        Args:
            api_key: Anthropic API key (defaults to ANTHROPIC_API_KEY env var)
            timeout: Request timeout in seconds
            client: Pre-built Anthropic client (skips key lookup)
        """
        self.api_key = api_key or os.environ.get("ANTHROPIC_API_KEY")
        self.timeout = timeout
        self._client = client
        self.enabled = client is not None or bool(self.api_key)

        if not self.enabled:
            logger.warning(
                "No Anthropic API key found, tactical advice disabled. "
                "Set ANTHROPIC_API_KEY to enable."
            )

    def _get_client(self):
        """Lazily initialize the Anthropic client."""
        if self._client is None and self.enabled:
            import anthropic

            self._client = anthropic.Anthropic(
                api_key=self.api_key,
                timeout=self.timeout,
            )
        return self._client

    def _complete(
        self,
        model: str,
        messages: list[dict],
        fallback: str,
        system: Optional[str] = None,
        max_tokens: int = 1024,
    ) -> str:
        client = self._get_client()
        if client is None:
            return fallback

        kwargs = {"model": model, "max_tokens": max_tokens, "messages": messages}
        if system:
            kwargs["system"] = system

        try:
            response = client.messages.create(**kwargs)
        except Exception as e:
            logger.error(f"Advice request to {model} failed: {e}")
            return fallback

        text = "".join(
            block.text for block in response.content if getattr(block, "text", None)
        )
        return text or fallback

    def quick_advice(self, role: str, prompt: str) -> str:
        """Low-latency triage steps for the given role."""
        return self._complete(
            QUICK_MODEL,
            [
                {
                    "role": "user",
                    "content": (
                        f"Role: {role}. Instruction: {prompt}. Provide immediate, "
                        "life-saving triage steps in a bulleted list."
                    ),
                }
            ],
            QUICK_FALLBACK,
        )

    def complex_strategy(self, prompt: str) -> str:
        """Longer-form dispatch strategy."""
        return self._complete(
            STRATEGY_MODEL,
            [{"role": "user", "content": prompt}],
            STRATEGY_FALLBACK,
            max_tokens=4096,
        )

    def traffic_analysis(self, location: Location, destination: str) -> str:
        """Route briefing from a position towards a destination."""
        return self._complete(
            STRATEGY_MODEL,
            [
                {
                    "role": "user",
                    "content": (
                        f"Analyze regional traffic density from {location.lat}, "
                        f"{location.lng} towards {destination}. Account for "
                        "emergency clearance."
                    ),
                }
            ],
            TRAFFIC_FALLBACK,
            max_tokens=4096,
        )

    def start_first_aid_chat(self, user_name: str) -> "FirstAidChat":
        """Open a conversational first-aid session for one patient."""
        return FirstAidChat(self, user_name)


class FirstAidChat:
    """Multi-turn first-aid conversation that keeps its own history."""

    def __init__(self, advisor: TacticalAdvisor, user_name: str):
        self.advisor = advisor
        self.system = (
            "You are the SAVIOUR First-Aid Bot HelpX. Provide immediate "
            f"instructions to {user_name}. Concisely."
        )
        self.history: list[dict] = []

    def stream(self, text: str) -> Iterator[str]:
        """Send a message and yield the reply as it arrives.

        The reply joins the history once the stream ends. If nothing arrives,
        the fallback text is yielded instead.

        Args:
            text: The user's message

        Yields:
            Reply text chunks
        """
        self.history.append({"role": "user", "content": text})
        chunks: list[str] = []

        client = self.advisor._get_client()
        if client is not None:
            try:
                with client.messages.stream(
                    model=QUICK_MODEL,
                    max_tokens=1024,
                    system=self.system,
                    messages=list(self.history),
                ) as response:
                    for chunk in response.text_stream:
                        chunks.append(chunk)
                        yield chunk
            except Exception as e:
                logger.error(f"First-aid chat stream failed: {e}")

        if not chunks:
            chunks.append(CHAT_FALLBACK)
            yield CHAT_FALLBACK

        self.history.append({"role": "assistant", "content": "".join(chunks)})

    def send(self, text: str) -> str:
        """Send a message and return the assistant's full reply."""
        return "".join(self.stream(text))
