"""
Conversation management service.
Handles CRUD operations for conversations and messages.
"""
from typing import Any, Dict, List, Optional

from sqlalchemy import select

from ..db import SessionLocal
from ..errors import NotFoundError
from ..logging_config import logger
from ..models import Conversation, Message, utcnow
from .project_service import get_owned_project

TITLE_LENGTH = 50


def _serialize_conversation(conv: Conversation) -> Dict[str, Any]:
    return {
        "id": conv.id,
        "title": conv.title,
        "project_id": conv.project_id,
        "created_at": conv.created_at.isoformat(),
        "updated_at": conv.updated_at.isoformat(),
    }


def _serialize_message(msg: Message) -> Dict[str, Any]:
    return {
        "id": msg.id,
        "role": msg.role,
        "content": msg.content,
        "created_at": msg.created_at.isoformat(),
    }


def _get_owned_conversation(db, user_id: str, conversation_id: str) -> Conversation:
    conv = db.get(Conversation, conversation_id)
    if conv is None or conv.user_id != user_id:
        raise NotFoundError("Conversation not found")
    return conv


def create_conversation(user_id: str, first_message: str, project_id: Optional[str] = None) -> Dict[str, Any]:
    """
    Create a new conversation titled after the first message.

    Returns:
        The serialized conversation
    """
    with SessionLocal() as db, db.begin():
        if project_id:
            get_owned_project(db, user_id, project_id)
        conv = Conversation(
            user_id=user_id,
            project_id=project_id,
            title=first_message[:TITLE_LENGTH],
        )
        db.add(conv)
        db.flush()
        data = _serialize_conversation(conv)
    logger.info("Created new conversation", conversation_id=data["id"], project_id=project_id)
    return data


def get_owned_conversation(user_id: str, conversation_id: str) -> Dict[str, Any]:
    with SessionLocal() as db:
        return _serialize_conversation(_get_owned_conversation(db, user_id, conversation_id))


def store_message(conversation_id: str, role: str, content: str) -> Dict[str, Any]:
    """
    Append a message to a conversation and bump the conversation's updated_at.
    
    Args:
        conversation_id: The conversation ID
        role: "user", "assistant" or "system"
        content: The message content
        
    Returns:
        The serialized message
    """
    with SessionLocal() as db, db.begin():
        msg = Message(conversation_id=conversation_id, role=role, content=content)
        db.add(msg)
        conv = db.get(Conversation, conversation_id)
        if conv is not None:
            conv.updated_at = utcnow()
        db.flush()
        data = _serialize_message(msg)
    logger.debug("Stored message", conversation_id=conversation_id, role=role)
    return data


def get_recent_messages(conversation_id: str, limit: int = 10) -> List[Dict[str, str]]:
    """Last `limit` messages as role/content dicts, oldest first."""
    with SessionLocal() as db:
        rows = db.execute(
            select(Message)
            .where(Message.conversation_id == conversation_id)
            .order_by(Message.created_at.desc())
            .limit(limit)
        ).scalars().all()
    return [{"role": m.role, "content": m.content} for m in reversed(rows)]


def list_conversations(user_id: str) -> List[Dict[str, Any]]:
    with SessionLocal() as db:
        rows = db.execute(
            select(Conversation)
            .where(Conversation.user_id == user_id)
            .order_by(Conversation.updated_at.desc())
        ).scalars().all()
    return [_serialize_conversation(c) for c in rows]


def get_conversation_by_id(user_id: str, conversation_id: str) -> Dict[str, Any]:
    """
    Retrieve a conversation and all of its messages.
    
    Raises:
        NotFoundError: If the conversation does not exist for this user
    """
    with SessionLocal() as db:
        conv = _get_owned_conversation(db, user_id, conversation_id)
        messages = db.execute(
            select(Message)
            .where(Message.conversation_id == conversation_id)
            .order_by(Message.created_at.asc())
        ).scalars().all()

        return {
            "conversation": _serialize_conversation(conv),
            "messages": [_serialize_message(m) for m in messages],
        }


def delete_conversation_by_id(user_id: str, conversation_id: str) -> None:
    """Delete a conversation; its messages go with it (ON DELETE CASCADE)."""
    with SessionLocal() as db, db.begin():
        db.delete(_get_owned_conversation(db, user_id, conversation_id))
    logger.info("Deleted conversation", conversation_id=conversation_id)
