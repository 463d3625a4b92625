# erlink/endpoints/ws_cases.py
import asyncio
import json
import logging

from fastapi import WebSocket, WebSocketDisconnect, status

from erlink.config import WS_POLL_SECONDS
from erlink.database import SessionLocal
from erlink.models.case import PENDING
from erlink.services.case_store import CaseStore
from erlink.utils.auth import actor_from_headers, is_hospital_owner

logger = logging.getLogger(__name__)

# swapped out by tests
session_factory = SessionLocal


def pending_cases(hospital_id: str):
    db = session_factory()
    try:
        cases = CaseStore(db).search(status=PENDING, hospital_id=hospital_id, sort="oldest")
        return [c.model_dump(mode="json") for c in cases]
    finally:
        db.close()


async def ws_hospital_cases(websocket: WebSocket, hospital_id: str):
    """Stream a hospital's incoming (pending) cases.

    A snapshot is sent on connect and whenever the pending set changes; the
    store is re-read every WS_POLL_SECONDS or as soon as the client sends any
    message (the dashboard's refresh button). Only staff of that hospital,
    identified by the same X-Actor-* headers as the HTTP routes, may subscribe.
    """
    actor = actor_from_headers(websocket.headers.get("x-actor-id"), websocket.headers.get("x-actor-role"))
    if actor is None or not is_hospital_owner(actor, hospital_id):
        logger.warning(f"🚫 Refused case feed of {hospital_id} to {actor.id if actor else 'anonymous client'}")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    logger.info(f"✅ Client {id(websocket)} subscribed to cases of {hospital_id}")
    last_sent = None
    force = True
    try:
        while True:
            cases = await asyncio.to_thread(pending_cases, hospital_id)
            if force or cases != last_sent:
                await websocket.send_text(json.dumps({"hospital_id": hospital_id, "pending": cases}))
                last_sent = cases
            try:
                await asyncio.wait_for(websocket.receive_text(), timeout=WS_POLL_SECONDS)
                force = True
            except asyncio.TimeoutError:
                force = False
    except WebSocketDisconnect:
        logger.info(f"🔌 Client {id(websocket)} disconnected from {hospital_id}")
