"""
Servidor HTTP local que recibe las actualizaciones de reproducción.

La fuente de reproducción (extensión del reproductor) hace POST de:
- /lyrics   -> canal lyrics-update
- /progress -> canal progress-update

Escucha solo en 127.0.0.1. Corre dentro del event loop de qasync.
"""

import json
import logging
from typing import Optional

from aiohttp import web

from .events import LYRICS_UPDATE, PROGRESS_UPDATE, PlaybackEventHub
from .models import PayloadError

logger = logging.getLogger(__name__)

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 15000

_HUB_KEY = web.AppKey("hub", PlaybackEventHub)

_CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, GET, OPTIONS",
    "Access-Control-Allow-Headers": "*",
}


@web.middleware
async def cors_middleware(request: web.Request, handler) -> web.StreamResponse:
    """CORS permisivo: la fuente suele ser una página web del reproductor."""
    if request.method == "OPTIONS":
        return web.Response(status=204, headers=_CORS_HEADERS)
    try:
        response = await handler(request)
    except web.HTTPException as e:
        e.headers.update(_CORS_HEADERS)
        raise
    response.headers.update(_CORS_HEADERS)
    return response


async def _forward(request: web.Request, channel: str) -> web.Response:
    hub = request.app[_HUB_KEY]
    try:
        payload = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        logger.warning(f"JSON inválido en {request.path}: {e}")
        raise web.HTTPBadRequest(text="invalid JSON")

    try:
        event = hub.parse(channel, payload)
    except PayloadError as e:
        logger.warning(f"Payload inválido en {request.path}: {e}")
        raise web.HTTPBadRequest(text=str(e))

    hub.dispatch(channel, event)
    return web.Response(text="OK")


async def handle_lyrics(request: web.Request) -> web.Response:
    return await _forward(request, LYRICS_UPDATE)


async def handle_progress(request: web.Request) -> web.Response:
    return await _forward(request, PROGRESS_UPDATE)


def create_app(hub: PlaybackEventHub) -> web.Application:
    """Crea la aplicación aiohttp conectada al hub de eventos."""
    app = web.Application(middlewares=[cors_middleware])
    app[_HUB_KEY] = hub
    app.router.add_post("/lyrics", handle_lyrics)
    app.router.add_post("/progress", handle_progress)
    return app


class PlaybackServer:
    """Ciclo de vida del servidor HTTP."""

    def __init__(
        self,
        hub: PlaybackEventHub,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
    ):
        self.host = host
        self.port = port
        self._app = create_app(hub)
        self._runner: Optional[web.AppRunner] = None

    @property
    def is_running(self) -> bool:
        return self._runner is not None

    async def start(self) -> bool:
        """
        Inicia el servidor.

        Returns:
            True si quedó escuchando, False si no se pudo abrir el puerto.
        """
        if self._runner is not None:
            return True

        runner = web.AppRunner(self._app, access_log=None)
        await runner.setup()
        site = web.TCPSite(runner, self.host, self.port)
        try:
            await site.start()
        except OSError as e:
            logger.error(f"No se pudo abrir {self.host}:{self.port}: {e}")
            await runner.cleanup()
            return False

        self._runner = runner
        logger.info(f"Servidor HTTP escuchando en http://{self.host}:{self.port}")
        return True

    async def close(self) -> None:
        """Detiene el servidor."""
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
            logger.info("Servidor HTTP detenido")
