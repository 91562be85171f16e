from collections.abc import Callable
from datetime import date
from pathlib import Path
from typing import Any

import httpx
import pytest

from career_relay.classifier import ReferenceClassifier
from career_relay.config import RelayConfig
from career_relay.relay import FileRelayService
from career_relay.storage import LocalFileStorage
from career_relay.telegram import TelegramFileClient

PUBLIC_BASE = "https://files.example.com/uploads/telegram-files"
CRM_URL = "https://crm.example.com/rest/1/secret"
BOT_TOKEN = "123456:test-token"
TODAY = date(2025, 7, 20)


@pytest.fixture
def config(tmp_path: Path) -> RelayConfig:
    return RelayConfig(
        _env_file=None,
        storage_dir=tmp_path / "files",
        public_base_url=PUBLIC_BASE,
        telegram_bot_token=BOT_TOKEN,
        crm_webhook_url=CRM_URL,
        redis_url=None,
    )


@pytest.fixture
def classifier() -> ReferenceClassifier:
    return ReferenceClassifier(
        durable_base_url=PUBLIC_BASE,
        durable_path_prefixes=["/uploads/telegram-files/", "uploads/telegram-files/"],
    )


@pytest.fixture
def storage(tmp_path: Path) -> LocalFileStorage:
    return LocalFileStorage(tmp_path / "files", PUBLIC_BASE)


def telegram_handler(
    files: dict[str, tuple[str, bytes]], calls: list[str] | None = None
) -> Callable[[httpx.Request], httpx.Response]:
    """Fake Bot API serving ``files`` as file_id -> (file_path, bytes)."""
    by_path = {path: data for path, data in files.values()}

    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(request.url.path)
        if request.url.path.endswith("/getFile"):
            file_id = request.url.params["file_id"]
            if file_id not in files:
                return httpx.Response(400, json={"ok": False, "description": "Bad Request: invalid file_id"})
            path, data = files[file_id]
            return httpx.Response(200, json={"ok": True, "result": {"file_path": path, "file_size": len(data)}})
        prefix = f"/file/bot{BOT_TOKEN}/"
        if request.url.path.startswith(prefix):
            path = request.url.path[len(prefix) :]
            if path in by_path:
                return httpx.Response(200, content=by_path[path])
        return httpx.Response(404)

    return handler


@pytest.fixture
def make_relay(
    storage: LocalFileStorage, classifier: ReferenceClassifier
) -> Callable[..., FileRelayService]:
    def _make(files: dict[str, tuple[str, bytes]], **kwargs: Any) -> FileRelayService:
        client = httpx.AsyncClient(transport=httpx.MockTransport(telegram_handler(files)))
        telegram = TelegramFileClient(bot_token=BOT_TOKEN, client=client)
        return FileRelayService(telegram, storage, classifier, today=lambda: TODAY, **kwargs)

    return _make
