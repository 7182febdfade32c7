import asyncio
import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import unused_port
from unittest.mock import AsyncMock, MagicMock
from hpd.models import ProbeResult

LAST_MODIFIED = "Wed, 21 Oct 2015 07:28:00 GMT"
STYLE_CSS = "body { color: #333; }\n" * 20
INDEX_HTML = "<!DOCTYPE html><html><head><title>Home</title></head><body>Hello</body></html>"
APP_JS = "console.log('app');\n"
DATA_JSON = '{"items": [1, 2, 3]}'
FAVICON = b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR\xff\xfe\x00"


@pytest.fixture
def make_result():
    def _make(status=200, headers=None, body=b"", url="http://example.com/", resolved=None,
              method="GET", duration_ms=5, status_text="OK"):
        return ProbeResult(
            status=status,
            status_text=status_text,
            headers=headers or {},
            body=body,
            duration_ms=duration_ms,
            requested_url=url,
            resolved_url=resolved or url,
            method=method,
        )
    return _make


@pytest.fixture
def mock_client():
    client = MagicMock()
    client.execute = AsyncMock()
    client.get = AsyncMock()
    client.post = AsyncMock()
    return client


def build_app():
    app = web.Application()

    async def index(request):
        if request.method != "GET":
            return web.Response(status=405, text="Method Not Allowed")
        return web.Response(text=INDEX_HTML, content_type="text/html")

    async def style(request):
        headers = {"Last-Modified": LAST_MODIFIED}
        if request.headers.get("If-Modified-Since") == LAST_MODIFIED:
            return web.Response(status=304, headers=headers)
        return web.Response(text=STYLE_CSS, content_type="text/css", headers=headers)

    async def app_js(request):
        return web.Response(text=APP_JS, content_type="application/javascript")

    async def data(request):
        return web.Response(text=DATA_JSON, content_type="application/json")

    async def favicon(request):
        return web.Response(body=FAVICON, content_type="image/png")

    async def status(request):
        return web.json_response({"status": "running", "port": request.url.port})

    async def error(request):
        return web.json_response({"code": 500, "message": "test error"}, status=500)

    async def register(request):
        payload = await request.json()
        return web.json_response({"code": 200, "message": f"registered {payload['username']}"})

    async def login(request):
        payload = await request.json()
        return web.json_response({"code": 200, "message": "ok", "token": f"token-{payload['username']}"})

    async def permanent(request):
        raise web.HTTPMovedPermanently(location="/index.html")

    async def temporary(request):
        raise web.HTTPFound(location="/index.html")

    async def hop(request):
        raise web.HTTPFound(location="/temporary-redirect")

    async def loop_a(request):
        raise web.HTTPFound(location="/loop-b")

    async def loop_b(request):
        raise web.HTTPFound(location="/loop-a")

    app.router.add_route('*', '/index.html', index)
    app.router.add_get('/style.css', style)
    app.router.add_get('/app.js', app_js)
    app.router.add_get('/data.json', data)
    app.router.add_get('/favicon.png', favicon)
    app.router.add_get('/api/status', status)
    app.router.add_get('/api/error', error)
    app.router.add_post('/api/register', register)
    app.router.add_post('/api/login', login)
    app.router.add_get('/permanent-redirect', permanent)
    app.router.add_get('/temporary-redirect', temporary)
    app.router.add_get('/hop', hop)
    app.router.add_get('/loop-a', loop_a)
    app.router.add_get('/loop-b', loop_b)
    return app


@pytest_asyncio.fixture
async def demo_server():
    port = unused_port()
    runner = web.AppRunner(build_app())
    await runner.setup()
    site = web.TCPSite(runner, 'localhost', port)
    await site.start()

    yield f"http://localhost:{port}"

    await runner.cleanup()


@pytest_asyncio.fixture
async def odd_status_server():
    """Raw TCP server answering every request with a status outside the HTTP range."""
    async def handle(reader, writer):
        head = await reader.readuntil(b"\r\n\r\n")
        for line in head.decode("latin-1").split("\r\n"):
            name, _, value = line.partition(":")
            if name.strip().lower() == "content-length":
                await reader.readexactly(int(value))
        writer.write(b"HTTP/1.1 799 Weird\r\nContent-Length: 0\r\nConnection: close\r\n\r\n")
        await writer.drain()
        writer.close()

    port = unused_port()
    server = await asyncio.start_server(handle, '127.0.0.1', port)

    yield f"http://127.0.0.1:{port}"

    server.close()
    await server.wait_closed()
