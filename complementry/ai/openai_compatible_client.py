from __future__ import annotations

import json
import socket
import ssl
import urllib.error
import urllib.parse
import urllib.request
from typing import Any

from complementry.ai.provider_base import AIProviderClient, CompletionRequest, CompletionResult, ProviderResult


CHAT_COMPLETIONS_PATH = "/chat/completions"


class OpenAICompatibleClient(AIProviderClient):
    user_agent = "Complementry/0.1"

    def test_connection(
        self,
        *,
        base_url: str,
        api_key: str,
        timeout_s: float = 10.0,
    ) -> ProviderResult:
        models_url = self._models_url(base_url)
        if not models_url:
            return ProviderResult(ok=False, status_text="API endpoint is missing.", error_kind="invalid_config")

        result = self._request_json(
            method="GET",
            url=models_url,
            payload=None,
            api_key=api_key,
            timeout_s=timeout_s,
        )
        if not result["ok"]:
            return ProviderResult(
                ok=False,
                status_text=str(result.get("status_text") or "Connection failed."),
                http_status=result.get("http_status"),
                error_kind=str(result.get("error_kind") or "request_failed"),
            )

        obj = result.get("json")
        models: list[str] = []
        if isinstance(obj, dict) and isinstance(obj.get("data"), list):
            for item in obj["data"]:
                if isinstance(item, dict) and str(item.get("id") or "").strip():
                    models.append(str(item["id"]).strip())
        return ProviderResult(
            ok=True,
            status_text="Connection successful.",
            http_status=result.get("http_status"),
            details={"models": sorted(set(models), key=str.lower)},
        )

    def complete_request(self, request: CompletionRequest) -> CompletionResult:
        url = self._completions_url(request.base_url)
        if not url:
            return CompletionResult(ok=False, status_text="API endpoint is missing.", error_kind="invalid_config")
        if not str(request.model or "").strip():
            return CompletionResult(ok=False, status_text="No model configured.", error_kind="invalid_config")

        payload = {
            "model": str(request.model),
            "messages": [
                {"role": "user", "content": str(request.prompt or "")},
            ],
            "max_tokens": max(1, int(request.max_output_tokens or 150)),
            "temperature": float(request.temperature),
            "stream": False,
            "n": 1,
        }

        result = self._request_json(
            method="POST",
            url=url,
            payload=payload,
            api_key=request.api_key,
            timeout_s=float(request.timeout_s or 0.0),
        )
        if not result["ok"]:
            return CompletionResult(
                ok=False,
                status_text=str(result.get("status_text") or "Completion request failed."),
                http_status=result.get("http_status"),
                error_kind=str(result.get("error_kind") or "request_failed"),
            )

        obj = result.get("json")
        if not isinstance(obj, dict):
            return CompletionResult(ok=False, status_text="Provider returned invalid completion payload.", error_kind="parse_error")

        text, finish_reason = self._extract_completion(obj)
        if not text.strip():
            return CompletionResult(
                ok=False,
                status_text="Provider returned empty completion.",
                error_kind="empty",
                finish_reason=finish_reason,
            )

        return CompletionResult(
            ok=True,
            status_text="Completion received.",
            http_status=result.get("http_status"),
            text=text,
            finish_reason=finish_reason,
            usage=obj.get("usage") if isinstance(obj.get("usage"), dict) else {},
        )

    def _request_json(
        self,
        *,
        method: str,
        url: str,
        payload: dict[str, Any] | None,
        api_key: str,
        timeout_s: float,
    ) -> dict[str, Any]:
        data_bytes = None
        if payload is not None:
            data_bytes = json.dumps(payload, ensure_ascii=True).encode("utf-8")

        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "User-Agent": self.user_agent,
        }
        token = str(api_key or "").strip()
        if token:
            headers["Authorization"] = f"Bearer {token}"

        # 0 means "no client-side timeout"; the coordinator may still expire the request.
        timeout = max(0.5, float(timeout_s)) if timeout_s and timeout_s > 0 else None
        req = urllib.request.Request(url=url, method=method.upper(), data=data_bytes, headers=headers)
        try:
            with urllib.request.urlopen(req, timeout=timeout) as resp:
                raw = resp.read()
                text = raw.decode("utf-8", errors="replace")
                parsed = json.loads(text) if text.strip() else {}
                return {
                    "ok": True,
                    "http_status": int(getattr(resp, "status", 200) or 200),
                    "json": parsed,
                    "status_text": "OK",
                    "error_kind": "",
                }
        except urllib.error.HTTPError as exc:
            body_text = ""
            try:
                body_text = exc.read().decode("utf-8", errors="replace")
            except Exception:
                body_text = ""
            return {
                "ok": False,
                "http_status": int(exc.code),
                "status_text": self._friendly_http_status_text(int(exc.code), body_text),
                "error_kind": "http_error",
            }
        except urllib.error.URLError as exc:
            reason = getattr(exc, "reason", None)
            if isinstance(reason, ssl.SSLError):
                message = "TLS handshake failed. Check endpoint certificate settings."
            elif isinstance(reason, socket.timeout):
                message = "Connection timed out. Endpoint is unreachable."
            elif isinstance(reason, ConnectionRefusedError):
                message = "Connection refused by endpoint."
            else:
                message = "Could not reach API endpoint. Check the endpoint URL and network connectivity."
            return {
                "ok": False,
                "http_status": None,
                "status_text": message,
                "error_kind": "network",
            }
        except (socket.timeout, TimeoutError):
            return {
                "ok": False,
                "http_status": None,
                "status_text": "Connection timed out. Endpoint is unreachable.",
                "error_kind": "network",
            }
        except json.JSONDecodeError:
            return {
                "ok": False,
                "http_status": None,
                "status_text": "Provider returned malformed JSON.",
                "error_kind": "parse_error",
            }
        except Exception:
            return {
                "ok": False,
                "http_status": None,
                "status_text": "Unexpected provider response.",
                "error_kind": "unknown",
            }

    def _completions_url(self, value: str) -> str:
        parts = self._split_endpoint(value)
        if parts is None:
            return ""
        path = parts.path.rstrip("/")
        if not path.endswith(CHAT_COMPLETIONS_PATH):
            path = f"{self._api_root(path)}{CHAT_COMPLETIONS_PATH}"
        return urllib.parse.urlunsplit(parts._replace(path=path))

    def _models_url(self, value: str) -> str:
        parts = self._split_endpoint(value)
        if parts is None:
            return ""
        path = parts.path.rstrip("/")
        if path.endswith(CHAT_COMPLETIONS_PATH):
            path = path[: -len(CHAT_COMPLETIONS_PATH)]
        return urllib.parse.urlunsplit(parts._replace(path=f"{self._api_root(path)}/models"))

    def _split_endpoint(self, value: str) -> urllib.parse.SplitResult | None:
        text = str(value or "").strip()
        if not text:
            return None
        if not text.startswith("http://") and not text.startswith("https://"):
            text = f"https://{text}"
        return urllib.parse.urlsplit(text)

    def _api_root(self, path: str) -> str:
        return path if path.endswith("/v1") else f"{path}/v1"

    def _friendly_http_status_text(self, status: int, body_text: str = "") -> str:
        detail = self._error_message_from_body(body_text)
        suffix = f" {detail}" if detail else ""
        if status in {401, 403}:
            return f"Authentication failed ({status}). Verify the API key and model access.{suffix}"
        if status == 404:
            return f"Endpoint not found (404). Verify the endpoint URL.{suffix}"
        if status == 429:
            return f"Provider rate limited the request (429). Try again shortly.{suffix}"
        if 500 <= status <= 599:
            return f"Provider is unavailable ({status}). Try again later."
        return f"Provider request failed ({status}).{suffix}"

    def _error_message_from_body(self, body_text: str) -> str:
        try:
            obj = json.loads(body_text) if str(body_text or "").strip() else None
        except json.JSONDecodeError:
            return ""
        if not isinstance(obj, dict):
            return ""
        error = obj.get("error")
        if isinstance(error, dict):
            return str(error.get("message") or "").strip()[:200]
        if isinstance(error, str):
            return error.strip()[:200]
        return ""

    def _extract_completion(self, payload: dict[str, Any]) -> tuple[str, str]:
        choices = payload.get("choices")
        if not isinstance(choices, list) or not choices:
            return "", ""
        first = choices[0]
        if not isinstance(first, dict):
            return "", ""
        finish_reason = str(first.get("finish_reason") or "")

        message = first.get("message")
        if isinstance(message, dict):
            content = message.get("content")
            if isinstance(content, str):
                return content, finish_reason
            if isinstance(content, list):
                parts: list[str] = []
                for item in content:
                    if not isinstance(item, dict):
                        continue
                    if str(item.get("type") or "") == "text":
                        parts.append(str(item.get("text") or ""))
                return "".join(parts), finish_reason

        text = first.get("text")
        if isinstance(text, str):
            return text, finish_reason
        return "", finish_reason
