from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass(slots=True)
class ProviderResult:
    ok: bool
    status_text: str
    http_status: int | None = None
    error_kind: str = ""
    details: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class CompletionRequest:
    base_url: str
    api_key: str
    model: str
    prompt: str
    max_output_tokens: int
    temperature: float
    timeout_s: float


@dataclass(slots=True)
class CompletionResult(ProviderResult):
    text: str = ""
    finish_reason: str = ""
    usage: dict[str, Any] = field(default_factory=dict)


class AIProviderClient(ABC):
    """Language-model backend. Implementations never raise from ``complete_request``."""

    @abstractmethod
    def test_connection(
        self,
        *,
        base_url: str,
        api_key: str,
        timeout_s: float = 10.0,
    ) -> ProviderResult:
        raise NotImplementedError

    @abstractmethod
    def complete_request(self, request: CompletionRequest) -> CompletionResult:
        raise NotImplementedError

    def complete(
        self,
        prompt: str,
        model_id: str,
        max_output_tokens: int,
        temperature: float,
        *,
        base_url: str,
        api_key: str,
        timeout_s: float = 30.0,
    ) -> CompletionResult:
        return self.complete_request(
            CompletionRequest(
                base_url=base_url,
                api_key=api_key,
                model=model_id,
                prompt=prompt,
                max_output_tokens=max_output_tokens,
                temperature=temperature,
                timeout_s=timeout_s,
            )
        )
