"""
Chat completion client.
Wraps the OpenAI and Ollama chat APIs behind one interface: a buffered
`complete()` and a lazily-produced `stream()` of text fragments.
"""
from typing import AsyncIterator, Dict, List, Optional

from .config import Settings
from .logging_config import logger

DEFAULT_SYSTEM_PROMPT = "You are a helpful AI assistant."


class ChatClient:
    """
    One provider/model pair.

    With `buffered=True` the model is called once in non-streaming mode and
    the finished text is delivered as a single fragment, for backends where
    streaming is unavailable.
    """

    def __init__(self, provider: str, model_name: str, settings: Settings, buffered: bool = False):
        if provider not in ("openai", "ollama"):
            raise ValueError(f"Unknown chat provider: {provider}")
        self.provider = provider
        self.model_name = model_name
        self.settings = settings
        self.buffered = buffered

    def _messages(self, messages: List[Dict], system_prompt: Optional[str]) -> List[Dict]:
        return [{"role": "system", "content": system_prompt or DEFAULT_SYSTEM_PROMPT}] + [
            {"role": m["role"], "content": m["content"]} for m in messages
        ]

    async def complete(self, messages: List[Dict], system_prompt: Optional[str] = None) -> str:
        payload = self._messages(messages, system_prompt)
        logger.info("Calling chat model", provider=self.provider, model=self.model_name,
                    turns=len(messages), streaming=False)

        if self.provider == "openai":
            from .openai_client import get_async_openai_client
            response = await get_async_openai_client(self.settings).chat.completions.create(
                model=self.model_name,
                messages=payload,
                temperature=0.2,
            )
            return response.choices[0].message.content or ""

        from .ollama_client import ollama_chat
        return await ollama_chat(self.settings.ollama_url, self.model_name, payload)

    async def stream(self, messages: List[Dict], system_prompt: Optional[str] = None) -> AsyncIterator[str]:
        if self.buffered:
            text = await self.complete(messages, system_prompt)
            if text:
                yield text
            return

        payload = self._messages(messages, system_prompt)
        logger.info("Calling chat model", provider=self.provider, model=self.model_name,
                    turns=len(messages), streaming=True)

        if self.provider == "openai":
            from .openai_client import get_async_openai_client
            stream_response = await get_async_openai_client(self.settings).chat.completions.create(
                model=self.model_name,
                messages=payload,
                temperature=0.2,
                stream=True,
            )
            async for chunk in stream_response:
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta.content or ""
                if delta:
                    yield delta
            return

        from .ollama_client import stream_ollama_chat
        async for delta in stream_ollama_chat(self.settings.ollama_url, self.model_name, payload):
            yield delta
