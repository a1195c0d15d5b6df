"""
llm/client.py

Chat-completion client behind the NLU calls.
- call_llm(system_prompt, user_prompt, history=None, json_mode=False) -> reply text
- Providers: DeepSeek (OpenAI-compatible API, default) or a local Ollama daemon
- json_mode asks the provider to emit a bare JSON object

Provider failures are logged and returned as a short text. Callers that expect JSON treat that text
as malformed output and fall back.

Environment variables:
- LLM_PROVIDER       (deepseek | ollama) default deepseek
- LLM_TIMEOUT        seconds, default 30
- DEEPSEEK_API_URL   (default: https://api.deepseek.com)
- DEEPSEEK_API_KEY   (required for deepseek)
- DEEPSEEK_MODEL     (default: deepseek-chat)
- OLLAMA_BASE_URL    (default: http://localhost:11434)
- OLLAMA_MODEL       (default: qwen2.5:3b)
- DEEPSEEK_OFFLINE   (1/true: answer locally without any network call)
"""

import logging
import os

import requests

from util.http import post_json, status_of


logger = logging.getLogger(__name__)

JSON_HEADERS = {"Content-Type": "application/json", "Accept": "application/json"}


def _llm_timeout():
    try:
        return float(os.getenv("LLM_TIMEOUT", "30"))
    except Exception:
        return 30.0


def _offline_reply(user_prompt, json_mode):
    if json_mode:
        return "{}"
    first = (user_prompt or "").strip().splitlines()
    return f"[offline] {first[0][:120]}" if first else "[offline] OK"


def _ollama(messages, json_mode, timeout):
    base = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434").rstrip("/")
    body = {
        "model": os.getenv("OLLAMA_MODEL", "qwen2.5:3b"),
        "messages": messages,
        "stream": False,
        "options": {"temperature": 0.2, "num_ctx": 4096},
    }
    if json_mode:
        body["format"] = "json"
    data = post_json(f"{base}/api/chat", body, headers=JSON_HEADERS, timeout=timeout)
    return (data.get("message") or {}).get("content", "")


def _deepseek(messages, json_mode, timeout):
    base = os.getenv("DEEPSEEK_API_URL", "https://api.deepseek.com").rstrip("/")
    headers = dict(JSON_HEADERS, Authorization=f"Bearer {os.getenv('DEEPSEEK_API_KEY', '')}")
    body = {"model": os.getenv("DEEPSEEK_MODEL", "deepseek-chat"), "messages": messages, "temperature": 0.3}
    if json_mode:
        body["response_format"] = {"type": "json_object"}
    data = post_json(f"{base}/v1/chat/completions", body, headers=headers, timeout=timeout)
    choices = data.get("choices") or [{}]
    return (choices[0].get("message") or {}).get("content", "")


PROVIDERS = {"deepseek": _deepseek, "ollama": _ollama}

FAILURE_TEXT = {
    "deepseek": "DeepSeek error (HTTP {status}). Check DEEPSEEK_API_KEY or try LLM_PROVIDER=ollama.",
    "ollama": "Ollama error (HTTP {status}). Is Ollama running? Start it with 'ollama serve'.",
}


def call_llm(system_prompt, user_prompt, history=None, json_mode=False):
    """
    Send system + user prompts (and optional prior messages) to the configured provider.

    Args:
        system_prompt: persistent instruction (str)
        user_prompt: per-turn prompt (str)
        history: prior messages as {'role': 'user'|'assistant', 'content': str}
        json_mode: request a JSON object response

    Returns:
        Reply text, trimmed.
    """
    if os.getenv("DEEPSEEK_OFFLINE", "").strip().lower() in {"1", "true", "yes"}:
        return _offline_reply(user_prompt, json_mode)

    provider = os.getenv("LLM_PROVIDER", "deepseek").strip().lower()
    if provider not in PROVIDERS:
        logger.warning("Unknown LLM_PROVIDER %r, using deepseek", provider)
        provider = "deepseek"

    messages = [{"role": "system", "content": system_prompt}] if system_prompt else []
    messages.extend(history or [])
    messages.append({"role": "user", "content": user_prompt})

    try:
        content = PROVIDERS[provider](messages, json_mode, _llm_timeout())
    except requests.HTTPError as exc:
        status = status_of(exc)
        logger.error("%s request failed (HTTP %s)", provider, status)
        return FAILURE_TEXT[provider].format(status=status)
    except (requests.RequestException, ValueError) as exc:
        logger.error("Unable to reach %s: %s", provider, exc)
        return "Network issue while contacting the model. Please try again shortly."
    return (content or "").strip()
