"""
RAG (Retrieval-Augmented Generation) service.
Orchestrates one chat turn: conversation bookkeeping, optional retrieval,
system-prompt assembly and relaying the model stream to the client.
"""
import json
import time
from dataclasses import dataclass, field
from typing import AsyncGenerator, Dict, List, Optional

from starlette.concurrency import run_in_threadpool

from ..chat_client import DEFAULT_SYSTEM_PROMPT
from ..config import Settings
from ..embedding import Embedder
from ..logging_config import logger
from ..models import MessageRole
from ..retrieval import RagContext, search_similar
from ..schemas import ChatRequest
from ..vector_store import VectorStore
from .conversation_service import create_conversation, get_owned_conversation, get_recent_messages, store_message
from .document_service import ready_document_ids


@dataclass
class PreparedChat:
    conversation_id: str
    history: List[Dict[str, str]]
    system_prompt: str
    contexts: List[RagContext] = field(default_factory=list)


def build_system_prompt(contexts: List[RagContext], base_prompt: str = DEFAULT_SYSTEM_PROMPT) -> str:
    """
    Prepend retrieved context to the base instruction.

    Each context is labelled `[Document N]`; the model is told to say so and
    fall back to general knowledge when the context does not help.
    """
    if not contexts:
        return base_prompt

    context_text = "\n\n".join(
        f"[Document {i}]\n{ctx['content']}" for i, ctx in enumerate(contexts, start=1)
    )
    return (
        f"{base_prompt}\n\n"
        "Use the following context to help answer the user's question:\n\n"
        f"{context_text}\n\n"
        "If the context doesn't contain relevant information, say so and answer "
        "based on your general knowledge."
    )


def _sse(event: Dict) -> str:
    return f"data: {json.dumps(event)}\n\n"


async def _retrieve(
    user_id: str,
    question: str,
    project_id: Optional[str],
    embedder: Embedder,
    vector_store: VectorStore,
    top_k: int,
) -> List[RagContext]:
    """Retrieval failures are logged and answered without context."""
    try:
        document_ids = await run_in_threadpool(ready_document_ids, user_id, project_id)
        if not document_ids:
            logger.info("No indexed documents in scope", user_id=user_id, project_id=project_id)
            return []
        return await run_in_threadpool(
            search_similar, question, embedder, vector_store, top_k, document_ids
        )
    except Exception as e:
        logger.error("RAG query failed", exc_info=e)
        return []


async def prepare_chat(
    user_id: str,
    payload: ChatRequest,
    embedder: Embedder,
    vector_store: VectorStore,
    settings: Settings,
) -> PreparedChat:
    """
    Steps (a)-(d) of a chat turn. The user message is durably stored before
    this returns, so it survives a model failure.

    Raises:
        NotFoundError: unknown conversation or project for this user
    """
    message = payload.message

    # 1. Get or create conversation
    if payload.conversation_id:
        conversation = await run_in_threadpool(get_owned_conversation, user_id, payload.conversation_id)
    else:
        conversation = await run_in_threadpool(create_conversation, user_id, message, payload.project_id)
    conversation_id = conversation["id"]

    # 2. History (oldest first) + the new turn
    history = await run_in_threadpool(get_recent_messages, conversation_id, settings.history_limit)
    history.append({"role": MessageRole.USER.value, "content": message})

    # 3. Store user message before the model is called
    await run_in_threadpool(store_message, conversation_id, MessageRole.USER.value, message)

    # 4. Retrieval: always for project-bound conversations, on request otherwise
    contexts: List[RagContext] = []
    project_id = conversation["project_id"]
    if project_id or payload.use_rag:
        contexts = await _retrieve(
            user_id, message, project_id, embedder, vector_store,
            payload.top_k or settings.rag_top_k,
        )
        logger.info("Retrieved context", conversation_id=conversation_id, count=len(contexts),
                    project_id=project_id)

    return PreparedChat(
        conversation_id=conversation_id,
        history=history,
        system_prompt=build_system_prompt(contexts),
        contexts=contexts,
    )


async def relay_stream(
    prepared: PreparedChat,
    fragments: AsyncGenerator[str, None],
    first_fragment: Optional[str] = None,
) -> AsyncGenerator[str, None]:
    """
    Relay model fragments as SSE events while buffering the full text, then
    persist the assistant message once the stream has drained.

    A model error mid-stream ends the stream with an `error` event and the
    assistant turn is not stored. A client disconnect cancels this generator
    with the same effect; the upstream model stream is closed either way.
    """
    start_time = time.time()
    sources = [{"documentId": c["documentId"], "score": round(c["score"], 4)} for c in prepared.contexts]

    try:
        yield _sse({"type": "meta", "conversation_id": prepared.conversation_id, "sources": sources})

        full_response = ""
        if first_fragment:
            full_response += first_fragment
            yield _sse({"type": "delta", "text": first_fragment})

        try:
            async for delta in fragments:
                full_response += delta
                yield _sse({"type": "delta", "text": delta})
        except Exception as e:
            logger.error("Chat stream failed", conversation_id=prepared.conversation_id, exc_info=e)
            yield _sse({"type": "error", "message": "Failed to generate response"})
            return

        message = await run_in_threadpool(
            store_message, prepared.conversation_id, MessageRole.ASSISTANT.value, full_response
        )
        logger.info("Chat turn completed", conversation_id=prepared.conversation_id,
                    chars=len(full_response), time_ms=round((time.time() - start_time) * 1000, 2))

        yield _sse({
            "type": "final",
            "text": full_response,
            "grounded": bool(prepared.contexts),
            "sources": sources,
            "conversation_id": prepared.conversation_id,
            "message_id": message["id"],
            "timestamp": message["created_at"],
        })
        yield 'data: {"type":"done"}\n\n'
    finally:
        # releases the provider's HTTP session when the client goes away
        await fragments.aclose()
