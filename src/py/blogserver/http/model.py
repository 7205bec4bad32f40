import os
from abc import ABC, abstractmethod
from enum import Enum
from pathlib import Path
from typing import Any, BinaryIO, NamedTuple, TypeAlias

from ..errors import StreamError
from ..utils.io import DEFAULT_ENCODING
from .api import ResponseFactory
from .status import HTTP_STATUS

# -----------------------------------------------------------------------------
#
# HELPERS
#
# -----------------------------------------------------------------------------


def headername(name: str, *, headers: dict[str, str] = {}) -> str:
	"""Normalizes the header name as `Kebab-Case`."""
	if name in headers:
		return headers[name]
	key: str = name.lower()
	if key in headers:
		return headers[key]
	else:
		normalized: str = "-".join(_.capitalize() for _ in name.split("-"))
		headers[key] = normalized
		return normalized


# -----------------------------------------------------------------------------
#
# DATA MODEL
#
# -----------------------------------------------------------------------------


class HTTPRequestLine(NamedTuple):
	"""Represents a request status line"""

	method: str
	path: str
	query: str
	protocol: str


class HTTPHeaders(NamedTuple):
	"""Wraps HTTP headers, keeping key information for response/request processing."""

	headers: dict[str, str]
	contentType: str | None = None
	contentLength: int | None = None


class HTTPProcessingStatus(Enum):
	"""Internal parser/processor state management"""

	Processing = 0
	Complete = 2
	Timeout = 10
	NoData = 11
	BadFormat = 12


# -----------------------------------------------------------------------------
#
# BODY
#
# -----------------------------------------------------------------------------


class HTTPBodyBlob(NamedTuple):
	"""Represents a body as bytes."""

	payload: bytes = b""
	length: int = 0

	@staticmethod
	def FromBytes(data: bytes) -> "HTTPBodyBlob":
		return HTTPBodyBlob(payload=data, length=len(data))


class HTTPBodyFile(NamedTuple):
	"""Represents an HTTP body from an opened file. The length is the size
	of the file at the time it was opened, which is what the response
	declares as its content length."""

	path: Path
	file: BinaryIO
	length: int

	@staticmethod
	def Open(path: Path) -> "HTTPBodyFile":
		f = open(path, "rb")
		try:
			size = os.fstat(f.fileno()).st_size
		except OSError:
			f.close()
			raise
		return HTTPBodyFile(path, f, size)

	def close(self) -> None:
		self.file.close()


# The different types of bodies that are managed
THTTPBody: TypeAlias = HTTPBodyBlob | HTTPBodyFile


class HTTPBodyWriter(ABC):
	"""A generic writer for response heads and bodies."""

	__slots__ = ["written"]

	def __init__(self) -> None:
		self.written: int = 0

	async def write(self, body: THTTPBody | bytes | None) -> bool:
		"""Writes the given type of body."""
		if isinstance(body, bytes):
			return await self._write(body)
		elif isinstance(body, HTTPBodyBlob):
			return await self._write(body.payload)
		elif isinstance(body, HTTPBodyFile):
			return await self._writeFile(body)
		elif body is None:
			return True
		else:
			raise ValueError(f"Unsupported body format: {body}")

	async def _write(self, chunk: bytes) -> bool:
		res = await self._writeBytes(chunk)
		self.written += len(chunk)
		return res

	async def _writeFile(self, body: HTTPBodyFile, size: int = 64_000) -> bool:
		"""Streams exactly `body.length` bytes from the file, raising a
		`StreamError` when the file ends early or can't be read."""
		remaining: int = body.length
		while remaining > 0:
			try:
				chunk = body.file.read(min(size, remaining))
			except OSError as e:
				raise StreamError(f"Could not read file: {body.path}") from e
			if not chunk:
				raise StreamError(
					f"File shrunk while streaming, {remaining} bytes missing: {body.path}"
				)
			await self._write(chunk)
			remaining -= len(chunk)
		return True

	@abstractmethod
	async def _writeBytes(self, chunk: bytes) -> bool: ...


# -----------------------------------------------------------------------------
#
# REQUESTS
#
# -----------------------------------------------------------------------------


class HTTPRequest(ResponseFactory["HTTPResponse"]):
	"""Represents an HTTP requests, which also acts as a factory for
	responses."""

	__slots__ = [
		"protocol",
		"method",
		"path",
		"query",
		"_headers",
	]

	def __init__(
		self,
		method: str,
		path: str,
		query: dict[str, str] | None = None,
		headers: HTTPHeaders | None = None,
		protocol: str = "HTTP/1.1",
	):
		super().__init__()
		self.method: str = method
		self.path: str = path
		self.query: dict[str, str] | None = query
		self.protocol: str = protocol
		self._headers: HTTPHeaders = headers or HTTPHeaders({})

	@property
	def headers(self) -> dict[str, str]:
		return self._headers.headers

	def header(self, name: str) -> str | None:
		return self._headers.headers.get(headername(name))

	def param(self, name: str, default: str | None = None) -> str | None:
		return self.query.get(name, default) if self.query else default

	def respond(
		self,
		content: Any = None,
		contentType: str | None = None,
		status: int = 200,
		headers: dict[str, str] | None = None,
		message: str | None = None,
	) -> "HTTPResponse":
		return HTTPResponse.Create(
			status=status,
			message=message,
			content=content,
			contentType=contentType,
			# We always answer in HTTP/1.1, even to HTTP/1.0 clients
			protocol="HTTP/1.1",
			headers=headers,
		)

	def __str__(self) -> str:
		return f"Request({self.method} {self.path}{f'?{self.query}' if self.query else ''} {self.headers})"


# -----------------------------------------------------------------------------
#
# RESPONSE
#
# -----------------------------------------------------------------------------


class HTTPResponse:
	"""An HTTP response."""

	@staticmethod
	def Create(
		content: Any = None,
		contentType: str | None = None,
		headers: dict[str, str] | None = None,
		status: int = 200,
		message: str | None = None,
		protocol: str = "HTTP/1.1",
	) -> "HTTPResponse":
		"""Factory method to create HTTP response objects."""
		body: THTTPBody | None = None
		if content is None:
			body = HTTPBodyBlob()
		elif isinstance(content, str):
			body = HTTPBodyBlob.FromBytes(content.encode(DEFAULT_ENCODING))
		elif isinstance(content, bytes):
			body = HTTPBodyBlob.FromBytes(content)
		elif isinstance(content, HTTPBodyFile) or isinstance(content, HTTPBodyBlob):
			body = content
		else:
			raise ValueError(f"Unsupported content {type(content)}:{content}")
		updated_headers: dict[str, str] = {
			headername(k): v for k, v in (headers or {}).items()
		}
		if contentType is not None:
			updated_headers["Content-Type"] = contentType
		updated_headers["Content-Length"] = str(body.length)
		return HTTPResponse(
			status=status,
			message=message or HTTP_STATUS.get(status, "Unknown status"),
			headers=HTTPHeaders(
				updated_headers,
				contentType=contentType,
				contentLength=body.length,
			),
			body=body,
			protocol=protocol,
		)

	__slots__ = [
		"protocol",
		"status",
		"message",
		"headers",
		"body",
	]

	def __init__(
		self,
		protocol: str,
		status: int,
		message: str | None,
		headers: HTTPHeaders,
		body: THTTPBody | None = None,
	):
		super().__init__()
		self.protocol: str = protocol
		self.status: int = status
		self.message: str | None = message
		self.headers: HTTPHeaders = headers
		self.body: THTTPBody | None = body

	def setHeader(self, name: str, value: str | int | None) -> "HTTPResponse":
		if value is None:
			self.headers.headers.pop(headername(name), None)
		else:
			self.headers.headers[headername(name)] = str(value)
		return self

	def head(self) -> bytes:
		"""Serializes the head as a payload."""
		message: str = self.message or HTTP_STATUS.get(self.status, "Unknown status")
		lines: list[str] = [
			f"{headername(k)}: {v}" for k, v in self.headers.headers.items()
		]
		lines.insert(0, f"{self.protocol} {self.status} {message}")
		lines.append("")
		lines.append("")
		return "\r\n".join(lines).encode("ascii")

	def close(self) -> None:
		"""Releases the resources held by the body."""
		if isinstance(self.body, HTTPBodyFile):
			self.body.close()

	def __str__(self) -> str:
		return f"Response({self.protocol} {self.status} {self.message} {self.headers.headers})"


# EOF
