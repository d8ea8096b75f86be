import json
from typing import AsyncGenerator, Dict, List

import aiohttp

from .logging_config import logger


async def stream_ollama_chat(base_url: str, model: str, messages: List[Dict]) -> AsyncGenerator[str, None]:
    """
    Stream chat completion tokens from Ollama.
    Yields the text of each NDJSON line that carries message content.
    """
    async with aiohttp.ClientSession() as session:
        async with session.post(
            f"{base_url}/api/chat",
            json={"model": model, "messages": messages, "stream": True},
        ) as resp:
            resp.raise_for_status()
            async for line in resp.content:
                line = line.decode().strip()
                if not line:
                    continue
                try:
                    data = json.loads(line)
                except json.JSONDecodeError:
                    logger.warning("Skipping malformed Ollama line", line=line[:200])
                    continue
                if "error" in data:
                    raise RuntimeError(f"Ollama error: {data['error']}")
                content = (data.get("message") or {}).get("content")
                if content:
                    yield content


async def ollama_chat(base_url: str, model: str, messages: List[Dict]) -> str:
    """Single non-streaming chat completion."""
    async with aiohttp.ClientSession() as session:
        async with session.post(
            f"{base_url}/api/chat",
            json={"model": model, "messages": messages, "stream": False},
        ) as resp:
            resp.raise_for_status()
            data = await resp.json()
    return (data.get("message") or {}).get("content", "")
