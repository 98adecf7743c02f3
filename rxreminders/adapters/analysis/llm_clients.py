"""
LLM chat clients used by the analysis provider.

Each client wraps one SDK behind complete(); the analysis provider does not
know which vendor answers.

    OpenAIChatClient    : openai SDK, also serves OpenAI-compatible endpoints (Groq)
    AnthropicChatClient : anthropic SDK
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass
class LLMCompletion:
    content: str       # generated text
    model: str         # model that produced it


class BaseLLMClient(ABC):

    @abstractmethod
    async def complete(self, system_prompt: str, user_prompt: str, model: str) -> LLMCompletion:
        """
        Run one chat completion.

        Raises:
            Exception: SDK errors propagate; the provider moves on to its next model
        """


class OpenAIChatClient(BaseLLMClient):

    def __init__(
        self,
        api_key: str,
        base_url: Optional[str] = None,
        temperature: float = 0.3,
        max_tokens: int = 3000,
        timeout: Optional[float] = None,
    ):
        import openai

        self.temperature = temperature
        self.max_tokens = max_tokens
        self._client = openai.AsyncOpenAI(api_key=api_key, base_url=base_url, timeout=timeout)

    async def complete(self, system_prompt: str, user_prompt: str, model: str) -> LLMCompletion:
        response = await self._client.chat.completions.create(
            model=model,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user",   "content": user_prompt},
            ],
        )
        return LLMCompletion(content=response.choices[0].message.content or "", model=model)


class AnthropicChatClient(BaseLLMClient):

    def __init__(
        self,
        api_key: str,
        temperature: float = 0.3,
        max_tokens: int = 3000,
        timeout: Optional[float] = None,
    ):
        import anthropic

        self.temperature = temperature
        self.max_tokens = max_tokens
        self._client = anthropic.AsyncAnthropic(api_key=api_key, timeout=timeout)

    async def complete(self, system_prompt: str, user_prompt: str, model: str) -> LLMCompletion:
        response = await self._client.messages.create(
            model=model,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            system=system_prompt,
            messages=[{"role": "user", "content": user_prompt}],
        )
        text = "".join(block.text for block in response.content if getattr(block, "type", None) == "text")
        return LLMCompletion(content=text, model=model)
