"""
FastAPI Application — local REST surface for the Aura wellness companion.

Provides:
- Chat turns, history reset and conversation summaries
- Chat personality / tone / verbosity settings
- Wellness log snapshot
- Vocal stress monitor start / stop / status
- Push-to-talk recording with transcription
- Read-aloud toggle for assistant messages
"""
from __future__ import annotations

import structlog
from datetime import datetime, timezone
from typing import Optional
from contextlib import asynccontextmanager

# Load .env before any config is read
from dotenv import load_dotenv
load_dotenv()

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from config.settings import get_settings
from models.schemas import ChatRole, ChatSettings
from core.engine import LLMAssistant
from core.history import ChatHistory
from core.orchestrator import ConversationOrchestrator
from backend.places import RESTPlaceSearch
from backend.location import create_location_provider
from database.wellness_log import InMemoryWellnessLog
from voice.devices import SoundDeviceMicrophone, SoundDeviceOutput
from voice.stress_monitor import AudioStressMonitor
from voice.capture import VoiceCaptureService
from voice.playback import SpeechSynthesisPlayer
from voice.providers import create_synthesizer, create_transcriber

logger = structlog.get_logger()

# ──────────────────────────────────────────────────────────────
#  Bootstrap
# ──────────────────────────────────────────────────────────────

_settings_boot = get_settings()

wellness_log = InMemoryWellnessLog()
chat_history = ChatHistory()
chat_settings = ChatSettings(
    personality=_settings_boot.conversation.personality,
    tone=_settings_boot.conversation.tone,
    verbosity=_settings_boot.conversation.verbosity,
)

place_search = RESTPlaceSearch(_settings_boot.places)
orchestrator = ConversationOrchestrator(
    assistant=LLMAssistant(_settings_boot.llm, _settings_boot.conversation.history_window),
    hooks=wellness_log,
    place_search=place_search,
    locator=create_location_provider(_settings_boot.location),
    config=_settings_boot.conversation,
)

microphone = SoundDeviceMicrophone(
    sample_rate=_settings_boot.monitor.sample_rate,
    device=_settings_boot.monitor.device,
)
stress_monitor = AudioStressMonitor(microphone, _settings_boot.monitor)
voice_capture = VoiceCaptureService(microphone, create_transcriber(_settings_boot.speech))
speech_player = SpeechSynthesisPlayer(create_synthesizer(_settings_boot.speech), SoundDeviceOutput())


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("aura_started", llm_provider=_settings_boot.llm.provider)
    yield

    stress_monitor.close()
    voice_capture.cancel()
    speech_player.stop()
    await place_search.close()
    logger.info("aura_stopped")


# ──────────────────────────────────────────────────────────────
#  App
# ──────────────────────────────────────────────────────────────

app = FastAPI(
    title="Aura API",
    description="Wellness companion: chat, stress logging and vocal stress check-ins",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ──────────────────────────────────────────────────────────────
#  Request/Response Models
# ──────────────────────────────────────────────────────────────

class ChatTurnRequest(BaseModel):
    text: str


class SpeechToggleRequest(BaseModel):
    message_id: str
    text: Optional[str] = None


def _stress_state() -> dict:
    return {
        "status": stress_monitor.status.value,
        "stress_level": round(stress_monitor.stress_level, 1),
    }


# ══════════════════════════════════════════════════════════════
#  HEALTH
# ══════════════════════════════════════════════════════════════

@app.get("/health")
async def health():
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "messages": len(chat_history),
        "monitor": stress_monitor.status.value,
        "recording": voice_capture.is_recording,
        "speaking": speech_player.active_message_id,
    }


# ══════════════════════════════════════════════════════════════
#  CHAT
# ══════════════════════════════════════════════════════════════

@app.get("/api/v1/chat/messages")
async def list_messages():
    return {
        "messages": [m.model_dump(mode="json") for m in chat_history],
        "is_loading": orchestrator.is_loading,
    }


@app.post("/api/v1/chat/messages")
async def send_message(req: ChatTurnRequest):
    if orchestrator.is_loading:
        raise HTTPException(409, "A reply is already in progress")
    reply = await orchestrator.handle_turn(
        req.text, chat_history, chat_settings, wellness_log.snapshot()
    )
    if reply is None:
        raise HTTPException(400, "Message text is empty")
    voice_capture.pending_input = ""
    return reply.model_dump(mode="json")


@app.delete("/api/v1/chat/messages")
async def clear_messages():
    speech_player.stop()
    chat_history.clear()
    return {"messages": [m.model_dump(mode="json") for m in chat_history]}


@app.post("/api/v1/chat/summary")
async def summarize_chat():
    message = await orchestrator.summarize(chat_history)
    if message is None:
        raise HTTPException(409, "Nothing to summarize yet")
    return message.model_dump(mode="json")


@app.get("/api/v1/chat/settings")
async def get_chat_settings():
    return chat_settings.model_dump(mode="json")


@app.put("/api/v1/chat/settings")
async def update_chat_settings(req: ChatSettings):
    global chat_settings
    chat_settings = req
    logger.info("chat_settings_updated", **req.model_dump(mode="json"))
    return chat_settings.model_dump(mode="json")


# ══════════════════════════════════════════════════════════════
#  WELLNESS LOG
# ══════════════════════════════════════════════════════════════

@app.get("/api/v1/wellness")
async def get_wellness():
    return wellness_log.snapshot().model_dump(mode="json")


# ══════════════════════════════════════════════════════════════
#  VOCAL STRESS MONITOR
# ══════════════════════════════════════════════════════════════

@app.post("/api/v1/stress/start")
async def start_stress_check():
    await stress_monitor.start()
    return _stress_state()


@app.post("/api/v1/stress/stop")
async def stop_stress_check():
    stress_monitor.stop()
    return _stress_state()


@app.get("/api/v1/stress")
async def get_stress_check():
    return _stress_state()


# ══════════════════════════════════════════════════════════════
#  VOICE INPUT
# ══════════════════════════════════════════════════════════════

@app.post("/api/v1/voice/recording/start")
async def start_recording():
    started = await voice_capture.start_recording()
    return {
        "recording": voice_capture.is_recording,
        "started": started,
        "notice": voice_capture.notice,
    }


@app.post("/api/v1/voice/recording/stop")
async def stop_recording():
    transcript = await voice_capture.stop_recording()
    return {"transcript": transcript, "pending_input": voice_capture.pending_input}


# ══════════════════════════════════════════════════════════════
#  READ ALOUD
# ══════════════════════════════════════════════════════════════

@app.post("/api/v1/speech/toggle")
async def toggle_speech(req: SpeechToggleRequest):
    text = req.text
    if text is None:
        message = chat_history.get(req.message_id)
        if message is None or message.role != ChatRole.MODEL:
            raise HTTPException(404, "Assistant message not found")
        text = message.text
    active = await speech_player.toggle(text, req.message_id)
    return {"active_message_id": active}


# ══════════════════════════════════════════════════════════════
#  Entry Point
# ══════════════════════════════════════════════════════════════

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="127.0.0.1", port=8000)
