import asyncio
from pathlib import Path

import pytest

from blogserver.bridge import BufferBodyWriter
from blogserver.bridge.python import run
from blogserver.config import ServerConfig
from blogserver.errors import NotFoundError, StreamError
from blogserver.http.model import HTTPBodyFile, HTTPRequest, HTTPResponse
from blogserver.model import Service
from blogserver.server import AIOSocketServer
from blogserver.services.files import FileService, decodePath

from conftest import Site


def parseResponse(data: bytes) -> tuple[int, dict[str, str], bytes]:
	head, _, body = data.partition(b"\r\n\r\n")
	lines = head.decode("ascii").split("\r\n")
	status = int(lines[0].split(" ")[1])
	headers = dict(_.split(": ", 1) for _ in lines[1:])
	return status, headers, body


def get(service: Service, path: str, method: str = "GET") -> tuple[int, dict[str, str], bytes]:
	return parseResponse(
		run(service).request(f"{method} {path} HTTP/1.1\r\nHost: localhost\r\n\r\n".encode("ascii"))
	)


@pytest.fixture
def files(site: Site) -> FileService:
	return FileService(ServerConfig.Create("http://localhost:5000/", site.root))


def test_decode_path():
	assert decodePath("") == "/index.html"
	assert decodePath("/") == "/index.html"
	assert decodePath("%20") == "/index.html"
	assert decodePath("/posts/my%20post.html") == "/posts/my post.html"


def test_root_serves_index(files: FileService):
	status, headers, body = get(files, "/")
	assert status == 200
	assert headers["Content-Type"] == "text/html; charset=utf-8"
	assert headers["Content-Length"] == str(len(b"<h1>Hi</h1>"))
	assert body == b"<h1>Hi</h1>"
	assert get(files, "/index.html") == (status, headers, body)


def test_missing_file(files: FileService):
	status, headers, body = get(files, "/missing.png")
	assert status == 404
	assert headers["Content-Type"] == "text/plain; charset=utf-8"
	assert body == b"Not Found"


def test_json_content_type(files: FileService):
	status, headers, body = get(files, "/data.json")
	assert status == 200
	assert headers["Content-Type"] == "application/json; charset=utf-8"
	assert body == b'{"posts": 2}'


def test_unknown_extension_is_binary(files: FileService, site: Site):
	status, headers, body = get(files, "/archive.xyz")
	assert status == 200
	assert headers["Content-Type"] == "application/octet-stream"
	assert body == (site.root / "archive.xyz").read_bytes()


def test_extension_lookup_ignores_case(files: FileService):
	status, headers, _ = get(files, "/PHOTO.PNG")
	assert status == 200
	assert headers["Content-Type"] == "image/png"


def test_percent_encoded_path(files: FileService):
	status, _, body = get(files, "/posts/my%20post.html")
	assert status == 200
	assert body == b"<p>Spaces</p>"


def test_query_is_ignored(files: FileService):
	status, _, body = get(files, "/data.json?draft=1")
	assert status == 200
	assert body == b'{"posts": 2}'


def test_method_is_ignored(files: FileService):
	for method in ("POST", "DELETE", "HEAD"):
		status, _, body = get(files, "/index.html", method)
		assert status == 200
		assert body == b"<h1>Hi</h1>"


def test_fallback_root(files: FileService):
	status, headers, body = get(files, "/theme.css")
	assert status == 200
	assert headers["Content-Type"] == "text/css; charset=utf-8"
	assert body == b"body{margin:0}"


def test_primary_root_wins_over_fallback(files: FileService):
	assert get(files, "/shared.css")[2] == b"body{color:red}"


def test_directories_are_not_served(files: FileService):
	assert get(files, "/posts")[0] == 404
	assert get(files, "/posts/")[0] == 404


def test_parent_segments_cannot_escape(files: FileService):
	# The secret sits next to the fallback root, outside both roots
	for path in ("/../../secret.txt", "/..%2F..%2Fsecret.txt", "/posts/../../../secret.txt"):
		status, _, body = get(files, path)
		assert status == 404
		assert body == b"Not Found"


def test_parent_segments_inside_roots_resolve(files: FileService):
	assert get(files, "/posts/../data.json")[0] == 200
	# Each candidate must stay within the root it was joined to
	assert get(files, "/../theme.css")[0] == 404


def test_unreachable_names_are_not_found(files: FileService):
	# Longer than the 255 bytes a path segment may have
	status, headers, body = get(files, "/" + "a" * 300 + ".html")
	assert status == 404
	assert headers["Content-Type"] == "text/plain; charset=utf-8"
	assert body == b"Not Found"
	assert get(files, "/posts/" + "b" * 300 + "/index.html")[0] == 404


def test_uncontained_joining(site: Site):
	files = FileService(
		ServerConfig.Create("http://localhost:5000/", site.root, contained=False)
	)
	status, _, body = get(files, "/../../secret.txt")
	assert status == 200
	assert body == b"secret"


def test_resolve(files: FileService, site: Site):
	resolved = files.resolve("/theme.css")
	assert resolved.root == site.parent
	assert resolved.local == site.parent / "theme.css"
	assert resolved.path == "/theme.css"
	with pytest.raises(NotFoundError) as e:
		files.resolve("/nope%00.html")
	assert e.value.path == "/nope\x00.html"


def test_malformed_request(files: FileService):
	status, headers, body = parseResponse(run(files).request(b"garbage\r\n\r\n"))
	assert status == 400
	assert body == b"Bad Request"


def test_response_closes_connection(files: FileService):
	_, headers, _ = get(files, "/")
	assert headers["Connection"] == "close"
	assert set(headers) == {"Content-Type", "Content-Length", "Connection"}


class ShrunkFile(Service):
	"""Declares more bytes than the file has, as when a file is truncated
	while being streamed."""

	def __init__(self, path: Path):
		self.path = path
		self.body: HTTPBodyFile | None = None
		super().__init__()

	def process(self, request: HTTPRequest) -> HTTPResponse:
		self.body = HTTPBodyFile(self.path, open(self.path, "rb"), 100)
		return request.respond(self.body, contentType="text/plain")


def test_stream_error_interrupts_response(site: Site):
	service = ShrunkFile(site.root / "index.html")
	writer = BufferBodyWriter()
	res = asyncio.run(
		AIOSocketServer.SendResponse(
			HTTPRequest("GET", "/"), service, writer, logRequests=False
		)
	)
	assert res is None
	assert bytes(writer.buffer).startswith(b"HTTP/1.1 200 OK\r\n")
	assert b"Content-Length: 100\r\n" in writer.buffer
	assert bytes(writer.buffer).endswith(b"<h1>Hi</h1>")
	assert service.body is not None and service.body.file.closed


def test_body_file_streams_declared_length(site: Site):
	path = site.root / "archive.xyz"
	body = HTTPBodyFile.Open(path)
	assert body.length == 256
	writer = BufferBodyWriter()
	try:
		assert asyncio.run(writer.write(body))
	finally:
		body.close()
	assert bytes(writer.buffer) == path.read_bytes()


def test_body_file_shorter_than_declared(site: Site):
	path = site.root / "index.html"
	body = HTTPBodyFile(path, open(path, "rb"), 1_000)
	try:
		with pytest.raises(StreamError):
			asyncio.run(BufferBodyWriter().write(body))
	finally:
		body.close()


class Failing(Service):
	def process(self, request: HTTPRequest) -> HTTPResponse:
		raise RuntimeError("Boom")


def test_failing_service_gets_internal_error():
	status, _, body = get(Failing(), "/")
	assert status == 500
	assert body == b"Internal Server Error"


# EOF
