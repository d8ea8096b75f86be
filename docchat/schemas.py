"""
Pydantic schemas for request/response validation.
"""
from typing import Optional
from pydantic import BaseModel, EmailStr, Field


class SendOtpBody(BaseModel):
    """Request a sign-in code by email."""
    email: EmailStr


class VerifyOtpBody(BaseModel):
    """Exchange a sign-in code for a session."""
    email: EmailStr
    otp: str = Field(..., min_length=4, max_length=12)


class ProjectCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None


class ProjectUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None


class DocumentCreate(BaseModel):
    """JSON document upload."""
    title: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1)
    mime_type: str = "text/plain"
    project_id: Optional[str] = None


class ChatRequest(BaseModel):
    """Request body for sending a chat message."""
    message: str = Field(..., min_length=1, description="The user's message")
    conversation_id: Optional[str] = Field(None, description="Existing conversation ID or None for a new one")
    project_id: Optional[str] = Field(None, description="Project to bind a new conversation to")
    use_rag: bool = Field(False, description="Retrieve from all of the user's documents (unbound conversations)")
    top_k: Optional[int] = Field(None, ge=1, le=20, description="Number of chunks to retrieve")
    model: Optional[str] = Field(None, description="Model identifier: 'openai:gpt-4o-mini' or 'ollama:qwen2.5:7b'")
