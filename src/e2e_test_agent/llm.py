"""LLM client wrapper around litellm.

The language model is the text-generation oracle behind free-text test
case synthesis. Its output is never trusted directly; see
generator/oracle.py for validation.
"""

from litellm import completion

DEFAULT_MODEL = "claude-sonnet-4-20250514"


class LlmClient:
    """Wrapper for LLM API calls via litellm."""

    def __init__(self, model: str | None = None, temperature: float = 0.2):
        self.model = model or DEFAULT_MODEL
        self.temperature = temperature

    def call(self, system: str, user: str) -> str:
        """Send a system+user message to the LLM and return the response text."""
        response = completion(
            model=self.model,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            temperature=self.temperature,
        )
        return response.choices[0].message.content or ""

    def generate(self, prompt: str, system: str | None = None) -> str:
        """Single-prompt completion; `system` defaults to an empty instruction."""
        return self.call(system=system or "", user=prompt)
