"""Mock completion provider for testing.

This provider returns predefined responses without making actual API calls.
Used for unit testing the translation pipeline.
"""
import json
from typing import Any, Optional, Sequence, Union

from ..base import Completion, CompletionRequest, LLMError, LLMProvider, LLMUsage


ScriptItem = Union[Completion, Exception]


class MockProvider(LLMProvider):
    """Mock completion provider for testing.

    Responses are resolved in this order:
    1. The next item of `script`, if any remain (exceptions are raised)
    2. `tool_responses[forced_tool]` when the request forces a capability
    3. `text` as a plain completion

    Every request is recorded in `calls` for assertions.

    Example:
        >>> provider = MockProvider(
        ...     tool_responses={"generate_sql": {"sql": "SELECT 1", "confidence": 0.9}}
        ... )
        >>> completion = provider.complete(CompletionRequest(
        ...     messages=({"role": "user", "content": "one"},),
        ...     forced_tool="generate_sql"
        ... ))
        >>> completion.tool_name
        'generate_sql'
    """

    def __init__(
        self,
        tool_responses: dict[str, Any] | None = None,
        text: str | None = None,
        script: Sequence[ScriptItem] | None = None,
        should_fail: bool = False,
        input_tokens: int = 100,
        output_tokens: int = 50
    ):
        """Initialize mock provider.

        Args:
            tool_responses: capability name -> arguments (dict, or raw str
                to simulate a malformed payload)
            text: Free-text response when no capability answer applies
            script: Ordered responses consumed one per call
            should_fail: If True, every call raises LLMError
            input_tokens: Mock input token count
            output_tokens: Mock output token count
        """
        self._tool_responses = tool_responses or {}
        self._text = text
        self._script = list(script or [])
        self._should_fail = should_fail
        self._input_tokens = input_tokens
        self._output_tokens = output_tokens
        self.calls: list[CompletionRequest] = []

    def complete(
        self,
        request: CompletionRequest,
        timeout: float = 60.0
    ) -> Completion:
        """Return the next mock completion.

        Raises:
            LLMError: If should_fail is True or a scripted exception is next
        """
        self.calls.append(request)

        if self._should_fail:
            raise LLMError("Mock provider configured to fail")

        if self._script:
            item = self._script.pop(0)
            if isinstance(item, Exception):
                raise item
            return item

        usage = self._usage()
        if request.forced_tool and request.forced_tool in self._tool_responses:
            arguments = self._tool_responses[request.forced_tool]
            if not isinstance(arguments, str):
                arguments = json.dumps(arguments)
            return Completion(
                tool_name=request.forced_tool,
                tool_arguments=arguments,
                usage=usage
            )

        return Completion(text=self._text, usage=usage)

    def _usage(self) -> Optional[LLMUsage]:
        return LLMUsage(
            input_tokens=self._input_tokens,
            output_tokens=self._output_tokens,
            total_tokens=self._input_tokens + self._output_tokens,
            estimated_cost_usd=0.001  # Mock cost
        )

    @property
    def model_name(self) -> str:
        """Return mock model identifier."""
        return "mock-llm-v1"
