"""
Chat-related API routes.
Handles conversation management and streamed, optionally RAG-augmented replies.
"""
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse

from ..config import Settings, get_settings
from ..dependencies import (
    ChatClientFactory, get_chat_client_factory, get_current_user, get_embedder, get_vector_store,
)
from ..embedding import Embedder
from ..errors import NotFoundError
from ..logging_config import logger
from ..models import User
from ..schemas import ChatRequest
from ..services.conversation_service import (
    delete_conversation_by_id,
    get_conversation_by_id,
    list_conversations,
)
from ..services.rag_service import prepare_chat, relay_stream
from ..vector_store import VectorStore

router = APIRouter(prefix="/api/chat", tags=["chat"])


@router.get("/conversations")
def get_conversations(user: User = Depends(get_current_user)):
    """The user's conversations, most recently active first."""
    return {"conversations": list_conversations(user.id)}


@router.get("/conversations/{conversation_id}")
def get_conversation(conversation_id: str, user: User = Depends(get_current_user)):
    """
    Retrieve a conversation with all of its messages.
    Returns messages in chronological order.
    """
    try:
        return get_conversation_by_id(user.id, conversation_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Conversation not found")


@router.delete("/conversations/{conversation_id}")
def delete_conversation(conversation_id: str, user: User = Depends(get_current_user)):
    """Delete a conversation and all its messages."""
    try:
        delete_conversation_by_id(user.id, conversation_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Conversation not found")
    return {"success": True}


@router.post("")
async def send_message(
    payload: ChatRequest,
    user: User = Depends(get_current_user),
    embedder: Embedder = Depends(get_embedder),
    vector_store: VectorStore = Depends(get_vector_store),
    chat_client_factory: ChatClientFactory = Depends(get_chat_client_factory),
    settings: Settings = Depends(get_settings),
):
    """
    Streaming chat endpoint using Server-Sent Events (SSE).
    
    Workflow:
    1. Create/retrieve conversation
    2. Store user message
    3. Retrieve relevant document chunks (project-bound or `use_rag`)
    4. Stream the model's reply
    5. Store assistant message once the stream has drained
    """
    try:
        prepared = await prepare_chat(user.id, payload, embedder, vector_store, settings)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    chat_client = chat_client_factory(payload.model)
    fragments = chat_client.stream(prepared.history, prepared.system_prompt)

    # pull the first fragment here so an unreachable model is still a plain 500
    try:
        first = await fragments.__anext__()
    except StopAsyncIteration:
        first = None
    except Exception as e:
        logger.error("Chat completion error", conversation_id=prepared.conversation_id, exc_info=e)
        raise HTTPException(status_code=500, detail="Failed to generate response")

    return StreamingResponse(
        relay_stream(prepared, fragments, first),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Conversation-Id": prepared.conversation_id,
        },
    )
