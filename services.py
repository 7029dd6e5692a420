import io
import re
import json
import logging
import requests

from functools import lru_cache
from typing import Any, Dict, Optional
from openai import OpenAI
from tenacity import retry, stop_after_attempt, wait_exponential

from config import CONFIG
from errors import DeliveryError, NarrativeGenerationError

logger = logging.getLogger(__name__)

TELEGRAM_MESSAGE_LIMIT = 4096
JSON_FENCE = re.compile(r'^```(?:json)?\s*|\s*```$', re.IGNORECASE)


def telegram_url(method: str) -> str:
    return f"https://api.telegram.org/bot{CONFIG['TELEGRAM_BOT_TOKEN']}/{method}"


def _plain(text: str) -> str:
    return text.replace("**", "").replace("*", "").replace("_", "").replace("`", "")


# --- Telegram API ---
@retry(stop=stop_after_attempt(3), wait=wait_exponential(min=4, max=10), reraise=True)
def send_message(chat_id: str, text: str) -> Dict[str, Any]:
    """Send message to Telegram, retrying as plain text when Markdown is rejected"""
    url = telegram_url("sendMessage")
    payload = {"chat_id": chat_id, "text": text[:TELEGRAM_MESSAGE_LIMIT], "parse_mode": "Markdown"}
    try:
        response = requests.post(url, json=payload, timeout=30)
        if response.status_code == 400 and "can't parse entities" in response.text.lower():
            logger.info({"event": "markdown_parsing_error", "chat_id": chat_id})
            payload.pop("parse_mode", None)
            payload["text"] = _plain(text)[:TELEGRAM_MESSAGE_LIMIT]
            response = requests.post(url, json=payload, timeout=30)
        response.raise_for_status()
    except requests.RequestException as e:
        logger.error({"event": "send_message_error", "chat_id": chat_id, "error": str(e)})
        raise DeliveryError(f"Could not send message to {chat_id}: {e}") from e
    logger.info({"event": "message_sent", "chat_id": chat_id, "text": text[:50]})
    return response.json()


@retry(stop=stop_after_attempt(3), wait=wait_exponential(min=4, max=10), reraise=True)
def send_document(chat_id: str, buffer: io.BytesIO, filename: str, caption: str = "") -> Dict[str, Any]:
    """Send a PDF document to a chat"""
    buffer.seek(0)
    files = {"document": (filename, buffer, "application/pdf")}
    data = {"chat_id": chat_id, "caption": caption}
    try:
        response = requests.post(telegram_url("sendDocument"), files=files, data=data, timeout=60)
        response.raise_for_status()
    except requests.RequestException as e:
        logger.error({"event": "send_document_error", "chat_id": chat_id, "error": str(e)})
        raise DeliveryError(f"Could not send document to {chat_id}: {e}") from e
    logger.info({"event": "document_sent", "chat_id": chat_id, "filename": filename})
    return response.json()


# --- OpenAI ---
@lru_cache(maxsize=1)
def get_openai_client() -> OpenAI:
    return OpenAI(api_key=CONFIG["OPENAI_API_KEY"])


def parse_generated_json(content: Optional[str]) -> Dict[str, Any]:
    """Decode a JSON object from model output, tolerating ```json fences"""
    if not content or not content.strip():
        raise NarrativeGenerationError("Empty response from model")
    cleaned = JSON_FENCE.sub("", content.strip())
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise NarrativeGenerationError(f"Model returned invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise NarrativeGenerationError("Model returned JSON that is not an object")
    return data


@retry(stop=stop_after_attempt(3), wait=wait_exponential(min=4, max=10), reraise=True)
def _complete(prompt: str, system_prompt: str) -> str:
    response = get_openai_client().chat.completions.create(
        model=CONFIG["OPENAI_MODEL"],
        messages=[
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": prompt},
        ],
        temperature=CONFIG["OPENAI_TEMPERATURE"],
        max_tokens=CONFIG["OPENAI_MAX_TOKENS"],
        response_format={"type": "json_object"},
    )
    return response.choices[0].message.content


def generate_narrative_with_openai(prompt: str, system_prompt: str) -> Dict[str, Any]:
    """Narrative generator backed by the OpenAI chat completions API"""
    try:
        content = _complete(prompt, system_prompt)
    except Exception as e:
        logger.error({"event": "openai_request_failed", "error": str(e)})
        raise NarrativeGenerationError(f"OpenAI request failed: {e}") from e
    data = parse_generated_json(content)
    logger.info({"event": "openai_narrative_received", "keys": sorted(data)})
    return data


def get_narrative_generator():
    """The configured generator, or None when AI narratives are off"""
    if CONFIG["ENABLE_AI_NARRATIVE"] and CONFIG["OPENAI_API_KEY"]:
        return generate_narrative_with_openai
    return None
