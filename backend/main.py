"""
Webcam Relay — FastAPI application entry point.

Starts the stale connection reaper on startup, serves the REST API and
the WebSocket gateway that relays webcam frames from computers to viewers.
"""

import asyncio
import json
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from api.gateway import GatewayProtocol
from api.routes import init_routes, router
from api.websocket import ConnectionManager
from config import (
    API_HOST,
    API_PORT,
    APP_NAME,
    APP_VERSION,
    CORS_ORIGINS,
    LIVENESS_WINDOW,
    LOG_LEVEL,
    REAPER_INTERVAL,
)
from registry.connections import ConnectionRegistry
from registry.reaper import StaleConnectionReaper
from relay.sessions import RelayManager

# --- Logging ---
logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def create_app(
    reaper_interval: float = REAPER_INTERVAL,
    liveness_window: float = LIVENESS_WINDOW,
) -> FastAPI:
    """Build the application with a fresh set of services."""
    registry = ConnectionRegistry()
    ws_manager = ConnectionManager()
    relay = RelayManager(registry, ws_manager)
    gateway = GatewayProtocol(registry, relay, ws_manager)
    reaper = StaleConnectionReaper(registry, reaper_interval, liveness_window)
    cleanup_tasks: set[asyncio.Task] = set()

    # Wire up registry change broadcasting
    async def on_registry_change():
        await ws_manager.broadcast("computers-updated", {})

    registry.on_change(on_registry_change)

    async def on_evicted(source):
        await relay.drop_participant(source.session_id, source.identity)

    reaper.on_evicted(on_evicted)

    async def close_connection(session_id: str):
        await ws_manager.disconnect(session_id)
        await gateway.on_disconnect(session_id)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Start/stop background services."""
        logger.info("Starting Webcam Relay services...")

        try:
            await reaper.start()
            logger.info(f"Webcam Relay ready — API: {API_HOST}:{API_PORT}")

            yield

        except Exception as e:
            logger.error(f"Startup failed: {e}", exc_info=True)
            raise
        finally:
            logger.info("Shutting down Webcam Relay services...")
            await reaper.stop()

    app = FastAPI(
        title=APP_NAME,
        version=APP_VERSION,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    # Inject services into routes
    init_routes(registry)
    app.include_router(router)

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        session_id = await ws_manager.connect(websocket)
        address = websocket.client.host if websocket.client else ""
        try:
            while True:
                text = await websocket.receive_text()
                try:
                    message = json.loads(text)
                except json.JSONDecodeError:
                    logger.debug(f"Ignoring non-JSON message from {session_id}")
                    continue
                await gateway.dispatch(session_id, message, address)
        except WebSocketDisconnect:
            pass
        except Exception as e:
            logger.warning(f"Connection {session_id} failed: {e}")
        finally:
            # Cleanup runs as its own task so cancelling the connection cannot cut it short
            task = asyncio.create_task(close_connection(session_id))
            cleanup_tasks.add(task)
            task.add_done_callback(cleanup_tasks.discard)
            await asyncio.shield(task)

    app.state.registry = registry
    app.state.relay = relay
    app.state.reaper = reaper
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        app,
        host=API_HOST,
        port=API_PORT,
        log_level=LOG_LEVEL.lower(),
    )
