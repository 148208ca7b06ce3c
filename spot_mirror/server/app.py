"""
HTTP boundary for spot-mirror.

A small aiohttp application that lets a browser front end start a
playlist run and watch it progress.

Routes:
    POST /start-downloads?playlist=<name>   Schedule a run in the background
    GET  /progress-updates                  Server-sent progress events
    GET  /playlists.json                    The catalog file
    GET  /songs/<file>                      Downloaded media
    GET  /album-art/<file>                  Downloaded cover art

Run trigger:
    The request returns as soon as the run is scheduled:
        200 "Download started"
        400 "Playlist name is required"   (parameter missing or blank)
    The run itself executes on a worker thread. Run-level failures
    (unknown playlist, another run in progress, unreadable catalog) are
    logged; the client only learns about them by never seeing progress.

Progress stream:
    One broadcaster subscription per connection, removed on disconnect.
    Events published on the worker thread are handed to the event loop
    with call_soon_threadsafe and written in the order they were published:

        data: {"playlist": "Road Trip", "percentage": 50}

    A comment line (": connected") is sent right after the headers so the
    client sees the stream open before the first event. While idle, a
    ": keepalive" comment is written every KEEPALIVE_INTERVAL seconds; a
    failed write is how a silent disconnect is noticed.

All responses carry "Access-Control-Allow-Origin: *" so a front end served
from another origin can call the API.
"""

import asyncio
import json

from aiohttp import web

from spot_mirror.core.config import Config, OutputConfig
from spot_mirror.core.exceptions import SpotMirrorError
from spot_mirror.core.logger import get_logger
from spot_mirror.core.progress import ProgressBroadcaster, ProgressEvent
from spot_mirror.download.pipeline import PlaylistPipeline


logger = get_logger(__name__)

PIPELINE_KEY = web.AppKey("pipeline", PlaylistPipeline)
BROADCASTER_KEY = web.AppKey("broadcaster", ProgressBroadcaster)
OUTPUT_KEY = web.AppKey("output", OutputConfig)
RUNS_KEY = web.AppKey("runs", set)
STREAMS_KEY = web.AppKey("streams", set)

KEEPALIVE_INTERVAL = 15  # seconds

SSE_HEADERS = {
    "Content-Type": "text/event-stream",
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}


@web.middleware
async def cors_middleware(request: web.Request, handler) -> web.StreamResponse:
    if request.method == "OPTIONS":
        response = web.Response()
        response.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
        response.headers["Access-Control-Allow-Headers"] = "*"
    else:
        response = await handler(request)
    response.headers["Access-Control-Allow-Origin"] = "*"
    return response


def create_app(
    pipeline: PlaylistPipeline,
    broadcaster: ProgressBroadcaster,
    output: OutputConfig
) -> web.Application:
    """
    Build the aiohttp application.

    Args:
        pipeline: Pipeline used for triggered runs.
        broadcaster: Channel the pipeline publishes to; SSE clients
                     subscribe here.
        output: Library layout served as static content.

    Returns:
        Configured web.Application (not yet running).
    """
    app = web.Application(middlewares=[cors_middleware])
    app[PIPELINE_KEY] = pipeline
    app[BROADCASTER_KEY] = broadcaster
    app[OUTPUT_KEY] = output
    app[RUNS_KEY] = set()
    app[STREAMS_KEY] = set()
    app.on_shutdown.append(_close_streams)

    output.songs_dir.mkdir(parents=True, exist_ok=True)
    output.art_dir.mkdir(parents=True, exist_ok=True)

    app.router.add_post("/start-downloads", start_downloads)
    app.router.add_get("/progress-updates", progress_updates)
    app.router.add_get("/playlists.json", catalog_file)
    app.router.add_static("/songs/", output.songs_dir)
    app.router.add_static("/album-art/", output.art_dir)

    return app


async def start_downloads(request: web.Request) -> web.Response:
    """Schedule a run for ?playlist=<name> and return immediately."""
    playlist_name = request.query.get("playlist", "")
    if not playlist_name.strip():
        return web.Response(status=400, text="Playlist name is required")

    logger.info(f"Received request to download playlist: {playlist_name}")

    loop = asyncio.get_running_loop()
    future = loop.run_in_executor(
        None, _run_in_background, request.app[PIPELINE_KEY], playlist_name
    )
    runs = request.app[RUNS_KEY]
    runs.add(future)
    future.add_done_callback(runs.discard)

    return web.Response(text="Download started")


def _run_in_background(pipeline: PlaylistPipeline, playlist_name: str) -> None:
    """Worker-thread entry point. Never raises."""
    try:
        pipeline.run(playlist_name)
    except SpotMirrorError as e:
        logger.error(f"Run for '{playlist_name}' not completed: {e.message}")
    except Exception:
        logger.exception(f"Run for '{playlist_name}' crashed")


async def progress_updates(request: web.Request) -> web.StreamResponse:
    """Stream progress events to one client until it disconnects."""
    broadcaster = request.app[BROADCASTER_KEY]
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue[ProgressEvent | None] = asyncio.Queue()
    streams = request.app[STREAMS_KEY]

    def listener(event: ProgressEvent) -> None:
        loop.call_soon_threadsafe(queue.put_nowait, event)

    subscription = broadcaster.subscribe(listener)
    streams.add(queue)
    response = web.StreamResponse(headers=SSE_HEADERS)

    try:
        await response.prepare(request)
        await response.write(b": connected\n\n")

        while True:
            try:
                event = await asyncio.wait_for(queue.get(), KEEPALIVE_INTERVAL)
            except asyncio.TimeoutError:
                await response.write(b": keepalive\n\n")
                continue

            if event is None:
                break

            payload = json.dumps(event.to_dict())
            await response.write(f"data: {payload}\n\n".encode("utf-8"))
    except ConnectionResetError:
        logger.debug("Progress client disconnected")
    finally:
        streams.discard(queue)
        broadcaster.unsubscribe(subscription)

    return response


async def _close_streams(app: web.Application) -> None:
    """Ask every open progress stream to finish so shutdown does not hang."""
    for queue in list(app[STREAMS_KEY]):
        queue.put_nowait(None)


async def catalog_file(request: web.Request) -> web.StreamResponse:
    """Serve playlists.json, 404 until the first catalog sync."""
    path = request.app[OUTPUT_KEY].catalog_file
    if not path.is_file():
        raise web.HTTPNotFound(text="Catalog not found")
    return web.FileResponse(path)


def pending_runs(app: web.Application) -> set[asyncio.Future]:
    """Runs scheduled by this app that have not finished yet."""
    return set(app[RUNS_KEY])


def run_server(config: Config) -> None:
    """
    Serve the application until interrupted.

    The broadcaster is created here and shared between the pipeline
    and every progress stream connection.
    """
    broadcaster = ProgressBroadcaster()
    pipeline = PlaylistPipeline.from_config(config, broadcaster)
    app = create_app(pipeline, broadcaster, config.output)

    logger.info(f"Serving {config.output.directory} at http://{config.server.host}:{config.server.port}")
    web.run_app(app, host=config.server.host, port=config.server.port, print=None)
