from __future__ import annotations

import asyncio
import sys
import threading
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
for entry in (ROOT, ROOT / "src"):
    if str(entry) not in sys.path:
        sys.path.insert(0, str(entry))


import pytest

from fmtbridge.host import LocalHost
from fmtbridge.runtime.host_runtime import HostRuntime


@pytest.fixture
def host_loop():
    """An event loop running on its own thread, standing in for the host."""
    loop = asyncio.new_event_loop()
    thread = threading.Thread(target=loop.run_forever, name="host-loop", daemon=True)
    thread.start()
    try:
        yield loop
    finally:
        loop.call_soon_threadsafe(loop.stop)
        thread.join(timeout=5)
        loop.close()


@pytest.fixture
def host_runtime(host_loop) -> HostRuntime:
    return HostRuntime(host_loop, timeout=10.0)


@pytest.fixture
def local_host() -> LocalHost:
    return LocalHost(plugins=["prettier-plugin-tailwindcss"])


@pytest.fixture
def write_config(tmp_path: Path):
    def _write(text: str, *, name: str = "fmtbridge.toml", root: Path | None = None) -> Path:
        path = (root or tmp_path) / name
        path.write_text(text, encoding="utf-8")
        return path

    return _write
