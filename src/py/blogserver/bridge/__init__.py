from ..http.model import HTTPBodyWriter, HTTPProcessingStatus, HTTPRequest
from ..http.parser import HTTPParser
from ..model import Service


class BufferBodyWriter(HTTPBodyWriter):
	"""Collects everything written into an in-memory buffer."""

	__slots__ = ["buffer"]

	def __init__(self) -> None:
		super().__init__()
		self.buffer: bytearray = bytearray()

	async def _writeBytes(self, chunk: bytes) -> bool:
		self.buffer += chunk
		return True


class Bridge:
	"""Bridges act as an interface between an HTTP client and a service,
	whether the client is a socket, a file or an API. The bridge parses the
	raw request and hands it to the service."""

	def __init__(self, service: Service):
		self.service: Service = service
		if not self.service:
			raise ValueError("Bridge has not been given a service")

	def parse(self, data: bytes) -> HTTPRequest | None:
		"""Parses the raw request, returning `None` when it is malformed or
		incomplete."""
		parser = HTTPParser()
		req: HTTPRequest | None = None
		for atom in parser.feed(data):
			if isinstance(atom, HTTPRequest):
				req = atom
			elif atom is HTTPProcessingStatus.BadFormat:
				return None
		return req


# EOF
