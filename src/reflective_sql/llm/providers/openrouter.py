"""OpenRouter completion provider.

OpenRouter exposes many models behind an OpenAI-compatible REST endpoint,
including function calling with a forced tool_choice.
"""
import os
from typing import Optional

import requests

from ..base import Completion, CompletionRequest, LLMError, LLMProvider, LLMTimeoutError, LLMUsage


class OpenRouterProvider(LLMProvider):
    """OpenRouter API provider.

    Requires OPENROUTER_API_KEY environment variable or explicit API key.

    Example:
        >>> provider = OpenRouterProvider(model="openai/gpt-4o-mini")
        >>> completion = provider.complete(CompletionRequest(
        ...     messages=({"role": "user", "content": "Say hi"},)
        ... ))
    """

    API_ENDPOINT = "https://openrouter.ai/api/v1/chat/completions"

    def __init__(self, model: str | None = None, api_key: str | None = None):
        """Initialize OpenRouter provider.

        Args:
            model: Model to use (default: from OPENROUTER_MODEL env var or openai/gpt-4o-mini)
            api_key: API key (default: from OPENROUTER_API_KEY env var)

        Raises:
            LLMError: If API key is not provided
        """
        self._api_key = api_key or os.getenv("OPENROUTER_API_KEY")
        if not self._api_key:
            raise LLMError(
                "OPENROUTER_API_KEY environment variable not set or api_key not provided",
                retryable=False
            )

        self._model = model or os.getenv("OPENROUTER_MODEL", "openai/gpt-4o-mini")

    def complete(
        self,
        request: CompletionRequest,
        timeout: float = 60.0
    ) -> Completion:
        """Send a chat completion through OpenRouter.

        Raises:
            LLMTimeoutError: If the request exceeds the timeout
            LLMError: For HTTP errors and malformed responses
        """
        payload = {
            "model": self._model,
            "messages": list(request.messages),
        }
        if request.tools:
            payload["tools"] = [tool.to_openai() for tool in request.tools]
        if request.forced_tool:
            payload["tool_choice"] = {
                "type": "function",
                "function": {"name": request.forced_tool},
            }

        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self._api_key}",
            "X-Title": "Reflective SQL"
        }

        try:
            response = requests.post(
                self.API_ENDPOINT,
                json=payload,
                headers=headers,
                timeout=timeout
            )
        except requests.exceptions.Timeout as e:
            raise LLMTimeoutError(f"OpenRouter request exceeded timeout of {timeout}s: {e}", timeout)
        except requests.exceptions.RequestException as e:
            raise LLMError(f"OpenRouter API request failed: {e}")

        if response.status_code == 429:
            raise LLMError(
                "OpenRouter rate limit exceeded",
                details={"status_code": 429, "retry_after": response.headers.get("Retry-After")}
            )
        if response.status_code != 200:
            raise LLMError(
                f"OpenRouter API returned status {response.status_code}: {response.text}",
                details={"status_code": response.status_code}
            )

        try:
            response_data = response.json()
            message = response_data["choices"][0]["message"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise LLMError(f"Malformed response from OpenRouter: {e}")

        usage = self._calculate_usage(response_data.get("usage"))

        tool_calls = message.get("tool_calls") or []
        if tool_calls:
            function = tool_calls[0].get("function", {})
            return Completion(
                text=message.get("content"),
                tool_name=function.get("name"),
                tool_arguments=function.get("arguments"),
                usage=usage
            )
        return Completion(text=message.get("content"), usage=usage)

    def _calculate_usage(self, usage_obj: Optional[dict]) -> Optional[LLMUsage]:
        """Token usage from the response. OpenRouter reports cost in USD itself."""
        if not usage_obj:
            return None

        input_tokens = usage_obj.get("prompt_tokens", 0)
        output_tokens = usage_obj.get("completion_tokens", 0)
        total_tokens = usage_obj.get("total_tokens", input_tokens + output_tokens)
        estimated_cost = float(usage_obj.get("cost", usage_obj.get("total_cost", 0.0)) or 0.0)

        return LLMUsage(
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            total_tokens=total_tokens,
            estimated_cost_usd=estimated_cost
        )

    @property
    def model_name(self) -> str:
        """Return the OpenRouter model being used."""
        return self._model
