import logging
from typing import Any

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_huggingface import ChatHuggingFace, HuggingFaceEndpoint

from .config import HUGGINGFACE_REPO_ID, HUGGINGFACE_TOKEN, LLM_TIMEOUT, LOG_LLM_OUTPUT
from .errors import LlmNotConfigured, UpstreamUnavailable

LOGGER = logging.getLogger("weather_chat.llm")

_CHAT_MODELS: dict[tuple[float, int], Any] = {}


def create_chat_model(temperature: float, max_new_tokens: int) -> Any:
    if not HUGGINGFACE_TOKEN:
        raise LlmNotConfigured("HUGGINGFACEHUB_API_TOKEN is not set")

    key = (round(float(temperature), 3), int(max_new_tokens))
    if key not in _CHAT_MODELS:
        endpoint_llm = HuggingFaceEndpoint(
            repo_id=HUGGINGFACE_REPO_ID,
            huggingfacehub_api_token=HUGGINGFACE_TOKEN,
            temperature=temperature,
            max_new_tokens=max_new_tokens,
            timeout=int(LLM_TIMEOUT),
        )
        _CHAT_MODELS[key] = ChatHuggingFace(llm=endpoint_llm)
        LOGGER.info("chat_model_created repo=%s temperature=%s max_new_tokens=%s", HUGGINGFACE_REPO_ID, *key)
    return _CHAT_MODELS[key]


def _message_text(result: Any) -> str:
    content = getattr(result, "content", result)
    if isinstance(content, list):
        parts = []
        for item in content:
            if isinstance(item, dict):
                parts.append(str(item.get("text") or ""))
            else:
                parts.append(str(item))
        return "".join(parts)
    return str(content or "")


def complete(system_prompt: str, user_text: str, temperature: float = 0.1, max_new_tokens: int = 512) -> str:
    """Run one system + user exchange against the hosted chat model.

    Raises LlmNotConfigured without a token and UpstreamUnavailable when the
    endpoint fails or answers with nothing.
    """
    model = create_chat_model(temperature, max_new_tokens)
    try:
        result = model.invoke([SystemMessage(content=system_prompt), HumanMessage(content=user_text)])
    except Exception as exc:
        LOGGER.warning("llm_invoke_failed repo=%s error=%s", HUGGINGFACE_REPO_ID, exc)
        raise UpstreamUnavailable(f"LLM call failed: {type(exc).__name__}: {exc}") from exc

    text = _message_text(result).strip()
    if LOG_LLM_OUTPUT:
        LOGGER.debug("llm_output %s", text)
    if not text:
        raise UpstreamUnavailable("LLM returned an empty response")
    return text
