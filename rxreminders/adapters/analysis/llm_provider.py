"""LLM Analysis Provider.

Implements AnalysisProviderPort on top of a chat-completion client. Each
configured model is tried in order until one returns a parseable reminder
plan; if every model fails the provider answers with a failed
AnalysisResponse rather than raising, so the caller can fall back to basic
analysis for that record.

Security Impact:
    - Only the record handed in is sent to the model
    - Raw model output is never logged beyond its length; parsing errors
      carry a truncated copy for debugging
"""

import logging
from typing import Optional, Sequence

from rxreminders.adapters.analysis.llm_clients import BaseLLMClient
from rxreminders.adapters.analysis.parsing import parse_provider_reply
from rxreminders.adapters.analysis.prompts import SYSTEM_PROMPT, build_analysis_prompt
from rxreminders.domain.models import AnalysisResponse, SourceRecord
from rxreminders.domain.ports import AnalysisProviderPort, ProviderResponseError

logger = logging.getLogger(__name__)


class LLMAnalysisProvider(AnalysisProviderPort):
    """Analysis provider backed by one LLM client and an ordered model list.

    Parameters:
        client: Chat-completion client (OpenAI-compatible or Anthropic)
        models: Models to try, first preferred
        name: Provider name used in logs

    Example Usage:
        ```python
        client = OpenAIChatClient(api_key=key, base_url=GROQ_BASE_URL)
        provider = LLMAnalysisProvider(client, ["llama-3.3-70b-versatile"], name="groq")
        response = await provider.analyze(record)
        ```
    """

    def __init__(self, client: BaseLLMClient, models: Sequence[str], name: Optional[str] = None):
        if not models:
            raise ValueError("At least one model is required")
        self.client = client
        self.models = list(models)
        self.name = name or type(client).__name__

    async def analyze(self, record: SourceRecord) -> AnalysisResponse:
        user_prompt = build_analysis_prompt(record)
        last_error: Optional[str] = None

        for model in self.models:
            try:
                completion = await self.client.complete(SYSTEM_PROMPT, user_prompt, model)
            except Exception as e:
                last_error = f"{model}: {str(e)}"
                logger.warning(f"{self.name} model {model} failed for record {record.id}: {type(e).__name__}")
                continue

            logger.debug(f"{self.name} model {model} replied with {len(completion.content)} characters")

            try:
                suggestions = parse_provider_reply(completion.content, record_id=record.id)
            except ProviderResponseError as e:
                last_error = f"{model}: {str(e)}"
                logger.warning(f"{self.name} model {model} returned an unusable reply for record {record.id}")
                continue

            logger.info(f"Record {record.id} analyzed by {self.name}/{model}: {len(suggestions)} suggestions")
            return AnalysisResponse.ok(suggestions)

        return AnalysisResponse.failed(last_error or "All models failed")
