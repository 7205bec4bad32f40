import asyncio

from ..http.model import HTTPRequest
from ..model import Service
from ..server import AIOSocketServer
from . import Bridge, BufferBodyWriter


class PythonBridge(Bridge):
	"""Runs requests through a service in-process, without sockets. Useful
	to test services and to render pages from scripts."""

	async def process(self, data: bytes) -> bytes:
		writer = BufferBodyWriter()
		req = self.parse(data)
		if req is None:
			await AIOSocketServer.SendResponse(
				HTTPRequest("GET", "/"), None, writer, logRequests=False
			)
		else:
			await AIOSocketServer.SendResponse(
				req, self.service, writer, logRequests=False
			)
		return bytes(writer.buffer)

	def request(self, data: bytes) -> bytes:
		"""Sends the raw request and returns the raw response."""
		return asyncio.run(self.process(data))


def run(service: Service) -> PythonBridge:
	"""Returns a bridge running requests through the given service."""
	return PythonBridge(service)


# EOF
