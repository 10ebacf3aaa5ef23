"""Browser WebSocket: pushes screen changes and drives usage tracking."""

import asyncio

import structlog
from fastapi import WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from sproutling.models.navigation import Screen
from sproutling.tracker.session import SessionTracker

logger = structlog.get_logger()


def _usage_message(tracker: SessionTracker) -> dict:
    return {
        "type": "usage",
        "today_seconds": tracker.today_usage_seconds,
        "remaining_seconds": tracker.remaining_time_seconds,
        "time_limit_reached": tracker.is_time_limit_reached,
        "tracking": tracker.is_tracking,
    }


def _screen_message(screen: Screen) -> dict:
    return {"type": "screen", "screen": screen.model_dump(mode="json")}


async def _forward_screens(websocket: WebSocket, queue: asyncio.Queue) -> None:
    """Send every navigation the tracker announces to the browser."""
    try:
        while True:
            screen = await queue.get()
            await websocket.send_json(_screen_message(screen))
    except asyncio.CancelledError:
        pass
    except Exception:
        logger.warning("browser_send_failed")


async def handle_browser_websocket(websocket: WebSocket, tracker: SessionTracker) -> None:
    """Handle a browser WebSocket connection.

    Each connection holds at most one claim on usage tracking:
    ``start_tracking`` takes it and ``stop_tracking`` or a disconnect gives it
    back. Tracking stops, and the counter is flushed, once no open
    connection holds a claim.
    """
    await websocket.accept()
    queue: asyncio.Queue[Screen] = asyncio.Queue()
    listener = queue.put_nowait
    tracker.on_navigate(listener)
    sender = asyncio.create_task(_forward_screens(websocket, queue))
    holding = False

    try:
        await websocket.send_json(_screen_message(tracker.screen))
        while True:
            data = await websocket.receive_json()
            msg_type = data.get("type", "")

            if msg_type == "start_tracking":
                if not holding:
                    tracker.acquire_tracking()
                    holding = True
                await websocket.send_json(_usage_message(tracker))

            elif msg_type == "stop_tracking":
                if holding:
                    tracker.release_tracking()
                    holding = False
                await websocket.send_json(_usage_message(tracker))

            elif msg_type == "get_usage":
                await websocket.send_json(_usage_message(tracker))

            elif msg_type == "navigate":
                try:
                    screen = Screen.model_validate(data.get("screen", {}))
                except ValidationError:
                    await websocket.send_json({"type": "error", "reason": "invalid_screen"})
                    continue
                tracker.navigate_to(screen)

            else:
                await websocket.send_json({"type": "error", "reason": "unknown_message"})

    except WebSocketDisconnect:
        logger.info("browser_disconnected")
    except Exception:
        logger.exception("websocket_handler_error")
    finally:
        tracker.remove_listener(listener)
        sender.cancel()
        await asyncio.gather(sender, return_exceptions=True)
        if holding:
            tracker.release_tracking()
