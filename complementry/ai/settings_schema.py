from __future__ import annotations

from dataclasses import dataclass
from typing import Any, TypedDict

from complementry.services.language_id import normalize_language_id


DEFAULT_PROMPT_TEMPLATE = (
    "Continue writing the following markdown document naturally. "
    "Only provide the continuation text, no explanations:\n\n{document}\n\nContinuation:"
)
DEFAULT_MODEL = "gpt-4"
DEFAULT_MAX_OUTPUT_TOKENS = 150
COMPLETION_TEMPERATURE = 0.7


class ComplementrySettings(TypedDict, total=False):
    base_url: str
    api_key: str
    model: str
    max_output_tokens: int
    default_prompt_template: str
    request_timeout_ms: int
    context_file_max_chars: int
    language_id: str


def default_complementry_settings() -> ComplementrySettings:
    return {
        "base_url": "",
        "api_key": "",
        "model": DEFAULT_MODEL,
        "max_output_tokens": DEFAULT_MAX_OUTPUT_TOKENS,
        "default_prompt_template": DEFAULT_PROMPT_TEMPLATE,
        "request_timeout_ms": 30000,
        "context_file_max_chars": 200000,
        "language_id": "markdown",
    }


def normalize_complementry_settings(raw: Any) -> ComplementrySettings:
    defaults = default_complementry_settings()
    data = dict(defaults)
    if isinstance(raw, dict):
        for key, value in raw.items():
            data[str(key)] = value

    def _clamp_int(value: Any, low: int, high: int, fallback: int) -> int:
        try:
            return max(low, min(high, int(value)))
        except (TypeError, ValueError):
            return fallback

    timeout_ms = _clamp_int(data.get("request_timeout_ms"), 0, 600000, int(defaults["request_timeout_ms"]))
    if 0 < timeout_ms < 1000:
        timeout_ms = 1000

    # An empty template would send an empty prompt.
    template = str(data.get("default_prompt_template") or "")
    if not template.strip():
        template = defaults["default_prompt_template"]

    return {
        "base_url": str(data.get("base_url", defaults["base_url"]) or "").strip(),
        "api_key": str(data.get("api_key", defaults["api_key"]) or "").strip(),
        "model": str(data.get("model", defaults["model"]) or "").strip() or defaults["model"],
        "max_output_tokens": _clamp_int(data.get("max_output_tokens"), 1, 4096, int(defaults["max_output_tokens"])),
        "default_prompt_template": template,
        "request_timeout_ms": timeout_ms,
        "context_file_max_chars": _clamp_int(data.get("context_file_max_chars"), 1000, 5000000, int(defaults["context_file_max_chars"])),
        "language_id": normalize_language_id(data.get("language_id"), defaults["language_id"]),
    }


@dataclass(slots=True)
class NormalizedComplementryConfig:
    base_url: str
    api_key: str
    model: str
    max_output_tokens: int
    default_prompt_template: str
    request_timeout_ms: int
    context_file_max_chars: int
    language_id: str
    temperature: float = COMPLETION_TEMPERATURE

    @classmethod
    def from_mapping(cls, data: Any) -> "NormalizedComplementryConfig":
        n = normalize_complementry_settings(data)
        return cls(
            base_url=str(n["base_url"]),
            api_key=str(n["api_key"]),
            model=str(n["model"]),
            max_output_tokens=int(n["max_output_tokens"]),
            default_prompt_template=str(n["default_prompt_template"]),
            request_timeout_ms=int(n["request_timeout_ms"]),
            context_file_max_chars=int(n["context_file_max_chars"]),
            language_id=str(n["language_id"]),
        )

    @property
    def timeout_s(self) -> float:
        if self.request_timeout_ms <= 0:
            return 0.0
        return float(self.request_timeout_ms) / 1000.0

    def missing_connection_fields(self) -> list[str]:
        missing: list[str] = []
        if not self.base_url:
            missing.append("base_url")
        if not self.api_key:
            missing.append("api_key")
        return missing
