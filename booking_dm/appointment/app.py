"""
Booking Dialogue Manager - FastAPI Application

HTTP surface for one live dialogue. The speech engine (or a test client)
posts boundary events and receives the commands to execute. When Redis is
reachable, commands are also published on the session's command stream.
"""

import os
import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError
import redis.asyncio as redis

from booking_dm.appointment.config import DialogueConfig, VARIANTS
from booking_dm.appointment.fsm_manager import DialogueMachine, TransitionResult
from booking_dm.appointment.models import (
    CommandModel, DialogueEventRequest, DialogueResponse, HealthResponse,
    StartDialogueRequest
)
from booking_dm.intent.nlu_adapter import parse_interpretation
from booking_dm.orchestrator.boundary import RedisSpeechBoundary
from booking_dm.orchestrator.runner import DialogueNotActive, DialogueRunner, ProtocolViolation
from booking_dm.shared.events import DialogueEvent, EventType

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# Global state
redis_client: Optional[redis.Redis] = None
config: Optional[DialogueConfig] = None
runner: Optional[DialogueRunner] = None
app_start_time: float = 0.0

# Events the speech engine may post; CLICK has its own endpoint
BOUNDARY_EVENTS = (
    EventType.ENGINE_READY,
    EventType.SPEAK_COMPLETE,
    EventType.RECOGNISED,
    EventType.NO_INPUT,
)


# ============================================================================
# Lifespan Management
# ============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage service lifecycle (startup/shutdown)
    """
    global redis_client, config, runner, app_start_time

    logger.info(" Starting Booking Dialogue Manager...")
    app_start_time = time.time()

    try:
        config = DialogueConfig.from_env()
        logger.info(" Configuration loaded")
    except ValueError as e:
        logger.error(f" Failed to load configuration: {e}")
        raise

    try:
        redis_client = redis.Redis.from_url(config.redis_url, decode_responses=True)
        await redis_client.ping()
        logger.info(" Redis connected")
    except Exception as e:
        logger.warning(f"️ Redis connection failed: {e} - commands are only returned over HTTP")
        redis_client = None

    logger.info(" Booking Dialogue Manager ready")

    yield

    logger.info(" Shutting down Booking Dialogue Manager...")

    if runner:
        await runner.stop()
        runner = None

    if redis_client:
        await redis_client.close()
        logger.info(" Redis connection closed")

    logger.info(" Service stopped")


# ============================================================================
# FastAPI Application
# ============================================================================

app = FastAPI(
    title="Booking Dialogue Manager",
    description="Turn-based appointment booking dialogue over a speech boundary",
    version="1.0.0",
    lifespan=lifespan
)


@app.exception_handler(DialogueNotActive)
async def dialogue_not_active_handler(request: Request, exc: DialogueNotActive):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


# ============================================================================
# API Endpoints
# ============================================================================

@app.post("/api/v1/dialogue/start", response_model=DialogueResponse)
async def start_dialogue(request: StartDialogueRequest = None):
    """
    Start a fresh dialogue, tearing down the current one.

    Returns:
        Initial state and the PREPARE command
    """
    global runner

    if not config:
        raise HTTPException(status_code=503, detail="Service not configured")

    variant = request.variant if request and request.variant else config.variant
    if variant not in VARIANTS:
        raise HTTPException(status_code=422, detail=f"Unknown variant {variant!r}")

    if runner:
        await runner.stop()
        runner = None

    machine = DialogueMachine.from_config(config, variant)
    new_runner = DialogueRunner(machine, log_state_transitions=config.log_state_transitions)
    if redis_client:
        new_runner.boundary = RedisSpeechBoundary(
            new_runner.session_id, redis_client, config.speech_settings()
        )

    try:
        result = await new_runner.start()
    except Exception as e:
        logger.error(f" Failed to start dialogue: {e}")
        raise HTTPException(status_code=500, detail="Failed to start dialogue")

    runner = new_runner
    return _response(runner, result)


@app.post("/api/v1/dialogue/event", response_model=DialogueResponse)
async def post_event(request: DialogueEventRequest):
    """
    Deliver one speech-engine event to the live dialogue.

    Returns:
        New state, dialogue record and the commands to execute
    """
    try:
        event_type = EventType(request.type)
    except ValueError:
        event_type = None
    if event_type not in BOUNDARY_EVENTS:
        raise HTTPException(status_code=422, detail=f"Unsupported event type {request.type!r}")

    if event_type == EventType.RECOGNISED and request.utterance is None:
        raise HTTPException(status_code=422, detail="recognised events need an utterance")

    try:
        parse_interpretation(request.interpretation)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=f"Invalid interpretation: {e.errors()}")

    event = DialogueEvent(
        type=event_type,
        utterance=request.utterance,
        confidence=request.confidence,
        interpretation=request.interpretation,
    )
    return await _dispatch(event)


@app.post("/api/v1/dialogue/click", response_model=DialogueResponse)
async def click():
    """
    UI click. Restarts the dialogue once it is done, ignored otherwise.
    """
    return await _dispatch(DialogueEvent.click())


@app.get("/api/v1/dialogue/status", response_model=DialogueResponse)
async def get_status():
    """
    Current state and record of the live dialogue.
    """
    current = _active_runner()
    return DialogueResponse(
        state=current.state.value,
        variant=current.machine.variant.value,
        record=current.record.to_dict(),
        complete=current.complete,
    )


@app.delete("/api/v1/dialogue")
async def delete_dialogue():
    """
    Tear down the live dialogue.
    """
    global runner

    current = _active_runner()
    await current.stop()
    runner = None
    logger.info(f" Dialogue deleted: {current.session_id}")
    return {"message": "Dialogue deleted successfully", "session_id": current.session_id}


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Health check endpoint.

    Checks configuration and Redis connectivity.
    """
    redis_connected = False
    if redis_client:
        try:
            await asyncio.wait_for(redis_client.ping(), timeout=1.0)
            redis_connected = True
        except (asyncio.TimeoutError, redis.RedisError, OSError):
            redis_connected = False

    config_valid = config is not None

    if not config_valid:
        status = "unhealthy"
    elif not redis_connected:
        status = "degraded"  # Commands are still returned over HTTP
    else:
        status = "healthy"

    return HealthResponse(
        status=status,
        dialogue_active=runner is not None and runner.running,
        redis_connected=redis_connected,
        config_valid=config_valid,
        uptime_seconds=time.time() - app_start_time,
    )


# ============================================================================
# Helper Functions
# ============================================================================

def _active_runner() -> DialogueRunner:
    if runner is None or not runner.running:
        raise DialogueNotActive("No active dialogue, start one first")
    return runner


async def _dispatch(event: DialogueEvent) -> DialogueResponse:
    current = _active_runner()
    try:
        result = await current.dispatch(event)
    except ProtocolViolation as e:
        logger.error(f" {e}")
        raise HTTPException(status_code=500, detail=str(e))
    return _response(current, result)


def _response(current: DialogueRunner, result: TransitionResult) -> DialogueResponse:
    return DialogueResponse(
        state=result.state.value,
        previous_state=result.previous_state.value if result.previous_state else None,
        variant=current.machine.variant.value,
        record=result.record.to_dict(),
        commands=[CommandModel(**command.to_dict()) for command in result.commands],
        complete=result.complete,
    )


# ============================================================================
# Root Endpoint
# ============================================================================

@app.get("/")
async def root():
    """
    Service information endpoint
    """
    return {
        "service": "Booking Dialogue Manager",
        "version": "1.0.0",
        "status": "operational",
        "endpoints": {
            "start": "POST /api/v1/dialogue/start",
            "event": "POST /api/v1/dialogue/event",
            "click": "POST /api/v1/dialogue/click",
            "status": "GET /api/v1/dialogue/status",
            "delete": "DELETE /api/v1/dialogue",
            "health": "GET /health"
        }
    }


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", "8005"))

    uvicorn.run(
        "booking_dm.appointment.app:app",
        host="0.0.0.0",
        port=port,
        log_level="info"
    )
