"""
realtyhub/routes_assistant.py

Public assistant endpoints: rule-based chatbot and stubbed voice bot.
"""

from __future__ import annotations

import sqlite3
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

try:
    from realtyhub import assistant
    from realtyhub.auth_context import get_store
    from realtyhub.config import IS_DEV
    from realtyhub.schemas import AssistantResponse, ChatRequest
    from realtyhub.store import Store
except ModuleNotFoundError:
    import assistant
    from auth_context import get_store
    from config import IS_DEV
    from schemas import AssistantResponse, ChatRequest
    from store import Store


router = APIRouter(
    prefix="/api/ai",
    tags=["assistant"],
)


class VoiceRequest(BaseModel):
    audio_data: Optional[str] = None
    language: str = "en"


@router.post("/chatbot", response_model=AssistantResponse)
def chatbot(request: ChatRequest, store: Store = Depends(get_store)) -> AssistantResponse:
    try:
        return AssistantResponse(**assistant.chat(store, request.message, request.language))
    except sqlite3.Error as e:
        if IS_DEV:
            print(f"[ASSISTANT] DB error in chatbot: {e}")
        raise HTTPException(status_code=500, detail="Server error in chatbot")


@router.post("/voicebot", response_model=AssistantResponse)
def voicebot(request: VoiceRequest, store: Store = Depends(get_store)) -> AssistantResponse:
    try:
        return AssistantResponse(**assistant.voice(store, request.audio_data, request.language))
    except sqlite3.Error as e:
        if IS_DEV:
            print(f"[ASSISTANT] DB error in voice bot: {e}")
        raise HTTPException(status_code=500, detail="Server error in voice bot")
