import asyncio
import threading
from pathlib import Path
from typing import Iterator, NamedTuple

import pytest

from blogserver.config import ServerConfig
from blogserver.server import AIOSocketServer, ServerOptions, ServerState
from blogserver.services.files import FileService


class Site(NamedTuple):
	root: Path
	parent: Path


@pytest.fixture
def site(tmp_path: Path) -> Site:
	"""A `blog` primary root inside a parent directory acting as the
	fallback root."""
	parent = tmp_path / "site"
	root = parent / "blog"
	(root / "posts").mkdir(parents=True)
	(root / "index.html").write_text("<h1>Hi</h1>")
	(root / "data.json").write_text('{"posts": 2}')
	(root / "posts" / "my post.html").write_text("<p>Spaces</p>")
	(root / "PHOTO.PNG").write_bytes(b"\x89PNG\r\n\x1a\n")
	(root / "archive.xyz").write_bytes(bytes(range(256)))
	(root / "shared.css").write_text("body{color:red}")
	(parent / "shared.css").write_text("body{color:blue}")
	(parent / "theme.css").write_text("body{margin:0}")
	(tmp_path / "secret.txt").write_text("secret")
	return Site(root, parent)


class RunningServer(NamedTuple):
	host: str
	port: int
	state: ServerState
	thread: threading.Thread


def startServer(
	config: ServerConfig, options: ServerOptions | None = None
) -> RunningServer:
	state = ServerState()
	options = options or ServerOptions(
		polling=0.05, timeout=5.0, stopSignals=False, logRequests=False
	)
	thread = threading.Thread(
		target=lambda: asyncio.run(
			AIOSocketServer.Serve(FileService(config), config, options, state)
		),
		daemon=True,
	)
	thread.start()
	assert state.ready.wait(5), "Server did not start"
	assert state.address is not None
	host, port = state.address
	return RunningServer(host, port, state, thread)


@pytest.fixture
def server(site: Site) -> Iterator[RunningServer]:
	config = ServerConfig.Create("http://127.0.0.1:0", site.root)
	running = startServer(config)
	yield running
	running.state.stop()
	running.thread.join(5)


# EOF
