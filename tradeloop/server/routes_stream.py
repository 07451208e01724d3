"""
WebSocket channel for real-time events.

Clients receive a "connected" message, then every hub event until they send
{"type": "subscribe", "data": {"symbol": ..., "venue": ...}}, after which only
events for their subscribed pairs (and events with no symbol) are forwarded.
The symbol/venue keys are also accepted at the top level of the message.
Subscribing to a full venue/symbol pair also starts streaming its price and
funding rate until the last client leaves.
"""
import asyncio
import json
from typing import Optional, Set, Tuple

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from loguru import logger

from tradeloop.errors import ClientInputError
from tradeloop.models import utcnow
from tradeloop.notifier import EventHub
from tradeloop.streaming import MarketStreamer


def make_router(hub: EventHub, streamer: Optional[MarketStreamer] = None, queue_size: int = 1000):
    router = APIRouter()

    @router.websocket("/ws")
    async def stream(websocket: WebSocket):
        await websocket.accept()
        loop = asyncio.get_running_loop()
        queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        streamed: Set[Tuple[str, str]] = set()

        def put(event):
            # Slow clients drop events rather than block publishers
            if not queue.full():
                queue.put_nowait(event)

        def enqueue(event):
            # Hub callbacks run on scheduler threads
            loop.call_soon_threadsafe(put, event)

        sub_id = hub.add_subscriber(enqueue)
        await websocket.send_json({
            "type": "connected",
            "data": {"subscriber": sub_id},
            "timestamp": utcnow().isoformat(),
        })

        async def forward():
            while True:
                event = await queue.get()
                await websocket.send_json(event)

        sender = asyncio.create_task(forward())
        try:
            while True:
                raw = await websocket.receive_text()
                try:
                    message = json.loads(raw)
                except json.JSONDecodeError:
                    await websocket.send_json({"type": "error", "data": {"error": "Invalid JSON"}})
                    continue

                kind = message.get("type")
                target = message.get("data") or message
                symbol, venue = target.get("symbol"), target.get("venue")
                pair = (venue, symbol)
                if kind == "subscribe":
                    if streamer is not None and venue and symbol and pair not in streamed:
                        try:
                            streamer.subscribe(venue, symbol)
                        except ClientInputError as e:
                            await websocket.send_json({"type": "error", "data": {"error": str(e)}})
                            continue
                        streamed.add(pair)
                    hub.subscribe(sub_id, symbol, venue)
                    await websocket.send_json({"type": "subscribed", "data": {"symbol": symbol, "venue": venue}})
                elif kind == "unsubscribe":
                    hub.unsubscribe(sub_id, symbol, venue)
                    if pair in streamed:
                        streamed.discard(pair)
                        streamer.unsubscribe(venue, symbol)
                    await websocket.send_json({"type": "unsubscribed", "data": {"symbol": symbol, "venue": venue}})
                elif kind == "ping":
                    await websocket.send_json({"type": "pong", "timestamp": utcnow().isoformat()})
                else:
                    await websocket.send_json({"type": "error", "data": {"error": f"Unknown message type: {kind}"}})
        except WebSocketDisconnect:
            logger.debug(f"WebSocket subscriber {sub_id} disconnected")
        finally:
            hub.remove_subscriber(sub_id)
            for venue, symbol in streamed:
                streamer.unsubscribe(venue, symbol)
            sender.cancel()

    return router
