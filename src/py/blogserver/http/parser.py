from typing import Iterator, Literal, TypeAlias
from urllib.parse import urlsplit

from ..utils.io import LineParser
from .model import (
	HTTPHeaders,
	HTTPProcessingStatus,
	HTTPRequest,
	HTTPRequestLine,
	headername,
)

# Requests whose head (request line and headers) exceeds this are rejected
MAX_HEAD_SIZE: int = 64 * 1024

# Type alias for what the parser produces
HTTPAtom: TypeAlias = (
	HTTPRequestLine | HTTPHeaders | HTTPProcessingStatus | HTTPRequest
)


class MessageParser:
	"""Parses an HTTP request line."""

	__slots__ = ["line", "value"]

	def __init__(self) -> None:
		self.line: LineParser = LineParser()
		self.value: HTTPRequestLine | None = None

	def flush(self) -> HTTPRequestLine | None:
		res = self.value
		self.reset()
		return res

	def reset(self) -> "MessageParser":
		self.line.reset()
		self.value = None
		return self

	def feed(self, chunk: bytes, start: int = 0) -> tuple[bool | None, int]:
		"""Returns `True` when a request line was parsed, `False` when the
		line is malformed and `None` when more data is needed."""
		line, read = self.line.feed(chunk, start)
		if line is None:
			return None, read
		elif not line:
			# Empty lines before the request line are tolerated (RFC 9112 §2.2)
			return None, read
		try:
			ln = line.decode("ascii")
		except UnicodeDecodeError:
			return False, read
		i = ln.find(" ")
		j = ln.rfind(" ")
		if i <= 0 or j <= i + 1:
			return False, read
		target: str = ln[i + 1 : j]
		protocol: str = ln[j + 1 :]
		if not protocol.startswith("HTTP/"):
			return False, read
		# Absolute-form targets are sent to proxies but still valid
		if target.startswith("http://") or target.startswith("https://"):
			parts = urlsplit(target)
			path, query = parts.path or "/", parts.query
		else:
			p: list[str] = target.split("?", 1)
			path, query = p[0], p[1] if len(p) > 1 else ""
		self.value = HTTPRequestLine(ln[0:i], path, query, protocol)
		return True, read

	def __str__(self) -> str:
		return f"MessageParser({self.value})"


class HeadersParser:
	__slots__ = ["headers", "contentType", "contentLength", "line"]

	def __init__(self) -> None:
		super().__init__()
		self.line: LineParser = LineParser()
		self.headers: dict[str, str] = {}
		self.contentType: str | None = None
		self.contentLength: int | None = None

	def flush(self) -> HTTPHeaders:
		res = HTTPHeaders(self.headers, self.contentType, self.contentLength)
		self.reset()
		return res

	def reset(self) -> "HeadersParser":
		self.line.reset()
		self.headers = {}
		self.contentType = None
		self.contentLength = None
		return self

	def feed(
		self, chunk: bytes, start: int = 0
	) -> tuple[str | Literal[False] | None, int]:
		"""Feeds data from chunk, starting at `start` offset. Returns
		a value and the next start offset. When the value is `None`, no
		header has been extracted, when the value is `False` it's an empty
		line, and when the value is a string, that header was added."""
		line, read = self.line.feed(chunk, start)
		if line is None:
			return None, read
		elif not line:
			# An empty line denotes the end of headers
			return False, read
		# Headers are expected to be in ASCII format, but we tolerate
		# Latin-1 values.
		ln: str = line.decode("latin-1")
		i = ln.find(":")
		if i == -1:
			return None, read
		h = ln[:i].lower().strip()
		v = ln[i + 1 :].strip()
		if h == "content-length":
			try:
				self.contentLength = int(v)
			except ValueError:
				self.contentLength = None
		elif h == "content-type":
			self.contentType = v
		n: str = headername(h)
		self.headers[n] = v
		return n, read

	def __str__(self) -> str:
		return f"HeadersParser({self.headers})"


class HTTPParser:
	"""A stateful, incremental HTTP request head parser. The request body is
	never parsed: the server answers any method the same way and closes the
	connection after one response."""

	def __init__(self) -> None:
		self.message: MessageParser = MessageParser()
		self.headers: HeadersParser = HeadersParser()
		self.parser: MessageParser | HeadersParser = self.message
		self.requestLine: HTTPRequestLine | None = None
		self.read: int = 0
		self.isComplete: bool = False

	def reset(self) -> "HTTPParser":
		self.message.reset()
		self.headers.reset()
		self.parser = self.message
		self.requestLine = None
		self.read = 0
		self.isComplete = False
		return self

	def feed(self, chunk: bytes) -> Iterator[HTTPAtom]:
		"""Feeds the given chunk, yielding the request line, the headers and
		then the request followed by `HTTPProcessingStatus.Complete`. Data
		after the head is ignored. A malformed or oversized head yields
		`HTTPProcessingStatus.BadFormat`."""
		size: int = len(chunk)
		offset: int = 0
		while offset < size and not self.isComplete:
			if self.parser is self.message:
				ok, read = self.message.feed(chunk, offset)
				offset += read
				self.read += read
				if ok is False:
					self.isComplete = True
					yield HTTPProcessingStatus.BadFormat
				elif ok:
					line = self.message.flush()
					self.requestLine = line
					if line is not None:
						yield line
					self.parser = self.headers
			else:
				ln, read = self.headers.feed(chunk, offset)
				offset += read
				self.read += read
				if ln is False:
					headers = self.headers.flush()
					yield headers
					line = self.requestLine
					self.isComplete = True
					if line is None:
						yield HTTPProcessingStatus.BadFormat
					else:
						yield HTTPRequest(
							method=line.method,
							path=line.path,
							query=parseQuery(line.query),
							headers=headers,
							protocol=line.protocol,
						)
						yield HTTPProcessingStatus.Complete
			if not self.isComplete and self.read > MAX_HEAD_SIZE:
				self.isComplete = True
				yield HTTPProcessingStatus.BadFormat


def parseQuery(text: str) -> dict[str, str]:
	res: dict[str, str] = {}
	if not text:
		return res
	for item in text.split("&"):
		kv = item.split("=", 1)
		if len(kv) == 1:
			res[item] = ""
		else:
			res[kv[0]] = kv[1]
	return res


# EOF
