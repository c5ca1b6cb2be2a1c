import logging
import uuid
from pathlib import Path

import anthropic
import httpx

from contaflow.config import settings

logger = logging.getLogger(__name__)

PROMPTS_DIR = Path(__file__).parent.parent / "prompts"

UNCONFIGURED_REPLY = "Tô sem acesso à IA agora 😕 (configuração faltando). Tenta de novo em instantes!"
FAILURE_REPLY = "Desculpe, estou com dificuldades técnicas. Tente novamente em instantes! 🔧"
EMPTY_REPLY = "Desculpe, não consegui processar sua mensagem."

_api_client = None


def _get_api_client():
    global _api_client
    if _api_client is None:
        _api_client = anthropic.AsyncAnthropic(api_key=settings.anthropic_api_key)
    return _api_client


SDK_MODEL_MAP = {
    "sonnet": "claude-sonnet-4-5-20250929",
    "haiku": "claude-haiku-4-5-20251001",
    "opus": "claude-opus-4-5-20251101",
}


def _resolve_model() -> str:
    return SDK_MODEL_MAP.get(settings.anthropic_model, settings.anthropic_model)


def _api_key() -> str | None:
    if settings.assistant_provider == "anthropic":
        return settings.anthropic_api_key
    return settings.openai_api_key


def is_configured() -> bool:
    return bool(_api_key())


def build_system_prompt(user_context: str) -> str:
    template = (PROMPTS_DIR / "fin_telegram.txt").read_text(encoding="utf-8")
    return template.replace("{user_context}", user_context)


class CompletionError(RuntimeError):
    pass


# --- OpenAI-compatible backend ---


async def _ask_openai(system_prompt: str, message: str) -> str:
    payload = {
        "model": settings.openai_model,
        "messages": [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": message},
        ],
        "temperature": settings.completion_temperature,
    }
    headers = {"Authorization": f"Bearer {settings.openai_api_key}"}
    async with httpx.AsyncClient(timeout=settings.completion_timeout) as client:
        resp = await client.post(settings.completion_url, json=payload, headers=headers)
    if not resp.is_success:
        raise CompletionError(f"Completion endpoint returned {resp.status_code}: {resp.text[:500]}")

    try:
        data = resp.json()
    except ValueError:
        raise CompletionError(f"Completion endpoint returned non-JSON: {resp.text[:500]}") from None
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        logger.warning("Completion response without content: %s", str(data)[:300])
        return ""
    return (content or "").strip()


# --- SDK backend ---


async def _ask_anthropic(system_prompt: str, message: str) -> str:
    client = _get_api_client()
    response = await client.messages.create(
        model=_resolve_model(),
        max_tokens=1024,
        system=system_prompt,
        messages=[{"role": "user", "content": message}],
        temperature=settings.completion_temperature,
    )
    text = "".join(block.text for block in response.content if block.type == "text")
    return text.strip()


# --- Public interface ---


async def ask_fin(message: str, user_context: str, chat_id: int | None = None) -> str:
    """Relay ``message`` to the configured model and return its reply.

    Never raises for upstream problems: a missing credential or a failed call
    yields a fixed user-facing reply and the details go to the log.
    """
    if not is_configured():
        logger.error(
            "Configuration error: no API key for provider %s",
            settings.assistant_provider,
            extra={"chat_id": chat_id},
        )
        return UNCONFIGURED_REPLY

    system_prompt = build_system_prompt(user_context)
    try:
        if settings.assistant_provider == "anthropic":
            reply = await _ask_anthropic(system_prompt, message)
        else:
            reply = await _ask_openai(system_prompt, message)
    except (CompletionError, httpx.HTTPError, anthropic.APIError):
        error_id = str(uuid.uuid4())
        logger.error(
            "Completion failed [%s]",
            error_id,
            exc_info=True,
            extra={"chat_id": chat_id, "error_id": error_id},
        )
        return FAILURE_REPLY

    return reply or EMPTY_REPLY
