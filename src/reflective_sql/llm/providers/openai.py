"""OpenAI completion provider.

Uses the Chat Completions API. When the request declares capabilities,
they are sent as function tools and the forced one is selected through
tool_choice, so the service answers with an invocation instead of text.
"""
import os
from typing import Optional

import openai

from ..base import Completion, CompletionRequest, LLMError, LLMProvider, LLMTimeoutError, LLMUsage


class OpenAIProvider(LLMProvider):
    """OpenAI API provider.

    Requires OPENAI_API_KEY environment variable or explicit API key.

    Pricing (GPT-4o): $2.50/MTok input, $10.00/MTok output

    Example:
        >>> provider = OpenAIProvider(model="gpt-4o")
        >>> completion = provider.complete(CompletionRequest(
        ...     messages=({"role": "user", "content": "Say hi"},)
        ... ))
        >>> completion.text
        'Hi!'
    """

    INPUT_COST_PER_MTOK = 2.50
    OUTPUT_COST_PER_MTOK = 10.00

    def __init__(self, model: str | None = None, api_key: str | None = None):
        """Initialize OpenAI provider.

        Args:
            model: Model to use (default: from OPENAI_MODEL env var or gpt-4o)
            api_key: API key (default: from OPENAI_API_KEY env var)

        Raises:
            LLMError: If API key is not provided
        """
        self._api_key = api_key or os.getenv("OPENAI_API_KEY")
        if not self._api_key:
            raise LLMError("OPENAI_API_KEY environment variable not set", retryable=False)

        self._model = model or os.getenv("OPENAI_MODEL", "gpt-4o")
        self._client = openai.OpenAI(api_key=self._api_key)

    def complete(
        self,
        request: CompletionRequest,
        timeout: float = 60.0
    ) -> Completion:
        """Send a chat completion, forcing a tool invocation if requested.

        Raises:
            LLMTimeoutError: If the request exceeds the timeout
            LLMError: For API errors
        """
        kwargs = {
            "model": self._model,
            "messages": list(request.messages),
            "timeout": timeout,
        }
        if request.tools:
            kwargs["tools"] = [tool.to_openai() for tool in request.tools]
        if request.forced_tool:
            kwargs["tool_choice"] = {
                "type": "function",
                "function": {"name": request.forced_tool},
            }

        try:
            response = self._client.chat.completions.create(**kwargs)
        except openai.APITimeoutError as e:
            raise LLMTimeoutError(f"OpenAI request exceeded timeout of {timeout}s: {e}", timeout)
        except openai.OpenAIError as e:
            raise LLMError(f"OpenAI API error: {e}")

        if not response.choices:
            raise LLMError("Empty response from OpenAI")

        message = response.choices[0].message
        usage = self._calculate_usage(response.usage)

        tool_calls = getattr(message, "tool_calls", None) or []
        if tool_calls:
            call = tool_calls[0]
            return Completion(
                text=message.content,
                tool_name=call.function.name,
                tool_arguments=call.function.arguments,
                usage=usage
            )
        return Completion(text=message.content, usage=usage)

    def _calculate_usage(self, usage_obj) -> Optional[LLMUsage]:
        """Token usage and estimated cost, or None if the API omitted it."""
        if usage_obj is None:
            return None

        input_tokens = usage_obj.prompt_tokens or 0
        output_tokens = usage_obj.completion_tokens or 0
        total_tokens = usage_obj.total_tokens or (input_tokens + output_tokens)

        estimated_cost = (
            (input_tokens / 1_000_000) * self.INPUT_COST_PER_MTOK +
            (output_tokens / 1_000_000) * self.OUTPUT_COST_PER_MTOK
        )

        return LLMUsage(
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            total_tokens=total_tokens,
            estimated_cost_usd=estimated_cost
        )

    @property
    def model_name(self) -> str:
        """Return the OpenAI model being used."""
        return self._model
