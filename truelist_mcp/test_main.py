import logging

import httpx
import pytest

from truelist_mcp import main as main_module
from truelist_mcp.main import build_http_app, build_server
from truelist_mcp.modules.validation.client import TruelistClient
from truelist_mcp.utils import ConfigurationError, Settings, load_settings


def test_load_settings_defaults():
    settings = load_settings({"TRUELIST_API_KEY": "abc"})
    assert settings == Settings(api_key="abc")
    assert settings.batch_size == 5
    assert settings.batch_delay_ms == 600
    assert settings.base_url == "https://api.truelist.io"
    assert settings.transport == "stdio"


def test_load_settings_overrides():
    settings = load_settings(
        {
            "TRUELIST_API_KEY": " abc ",
            "TRUELIST_BASE_URL": "https://proxy.internal/",
            "TRUELIST_TIMEOUT": "7.5",
            "TRUELIST_BATCH_SIZE": "3",
            "TRUELIST_BATCH_DELAY_MS": "0",
            "TRUELIST_TRANSPORT": "HTTP",
            "TRUELIST_PORT": "9100",
        }
    )
    assert settings.api_key == "abc"
    assert settings.base_url == "https://proxy.internal"
    assert settings.timeout == 7.5
    assert settings.batch_size == 3
    assert settings.batch_delay_ms == 0
    assert settings.transport == "http"
    assert settings.port == 9100


@pytest.mark.parametrize(
    "environ",
    [
        {},
        {"TRUELIST_API_KEY": "   "},
        {"TRUELIST_API_KEY": "abc", "TRUELIST_BATCH_SIZE": "five"},
        {"TRUELIST_API_KEY": "abc", "TRUELIST_BATCH_SIZE": "0"},
        {"TRUELIST_API_KEY": "abc", "TRUELIST_BATCH_DELAY_MS": "-1"},
        {"TRUELIST_API_KEY": "abc", "TRUELIST_TRANSPORT": "websocket"},
        {"TRUELIST_API_KEY": "abc", "LOG_LEVEL": "verbose"},
    ],
)
def test_load_settings_rejects_bad_environment(environ):
    with pytest.raises(ConfigurationError):
        load_settings(environ)


def test_main_exits_without_api_key(monkeypatch):
    monkeypatch.delenv("TRUELIST_API_KEY", raising=False)
    monkeypatch.setattr(main_module, "load_dotenv", lambda: False)
    started = []
    monkeypatch.setattr(main_module, "serve", lambda settings: started.append(settings))

    with pytest.raises(SystemExit) as exc_info:
        main_module.main()

    assert exc_info.value.code == 1
    assert started == []


@pytest.mark.asyncio
async def test_build_server_registers_tools():
    async with TruelistClient("abc") as client:
        server = build_server(client, Settings(api_key="abc"))
        names = sorted(tool.name for tool in await server.list_tools())

    assert names == ["check_account", "validate_email", "validate_emails"]
    assert server._mcp_server.create_initialization_options().server_version == "0.1.0"


@pytest.mark.asyncio
async def test_http_app_serves_health():
    async with TruelistClient("abc") as client:
        app = build_http_app(build_server(client, Settings(api_key="abc", transport="http")))
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http:
            response = await http.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "server": "truelist", "version": "0.1.0"}


def test_main_applies_log_level_loaded_from_dotenv(monkeypatch):
    root = logging.getLogger()
    previous_level = root.level
    monkeypatch.setenv("TRUELIST_API_KEY", "abc")
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    # Stands in for a .env file that sets LOG_LEVEL
    monkeypatch.setattr(main_module, "load_dotenv", lambda: monkeypatch.setenv("LOG_LEVEL", "debug"))
    served = []

    async def fake_serve(settings):
        served.append(settings)

    monkeypatch.setattr(main_module, "serve", fake_serve)

    try:
        main_module.main()
        assert root.level == logging.DEBUG
    finally:
        root.setLevel(previous_level)

    assert served[0].log_level == "DEBUG"


def test_main_exits_on_unknown_log_level(monkeypatch):
    monkeypatch.setenv("TRUELIST_API_KEY", "abc")
    monkeypatch.setenv("LOG_LEVEL", "verbose")
    monkeypatch.setattr(main_module, "load_dotenv", lambda: False)
    started = []
    monkeypatch.setattr(main_module, "serve", lambda settings: started.append(settings))

    with pytest.raises(SystemExit) as exc_info:
        main_module.main()

    assert exc_info.value.code == 1
    assert started == []


@pytest.mark.asyncio
async def test_serve_logs_shutdown_when_transport_fails(monkeypatch, caplog):
    async def broken_stdio(self):
        raise RuntimeError("stdin closed")

    monkeypatch.setattr(main_module.FastMCP, "run_stdio_async", broken_stdio)
    caplog.set_level(logging.INFO)

    with pytest.raises(RuntimeError, match="stdin closed"):
        await main_module.serve(Settings(api_key="abc"))

    assert "Shutting down truelist MCP server" in caplog.text
