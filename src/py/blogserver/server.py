import asyncio
import socket
import threading
from dataclasses import dataclass, field
from signal import SIGINT, SIGTERM
from typing import Any, Awaitable, NamedTuple

from .config import LOG_REQUESTS, ServerConfig
from .errors import BindError, CancellationError, StreamError
from .http.model import (
	HTTPBodyFile,
	HTTPBodyWriter,
	HTTPProcessingStatus,
	HTTPRequest,
	HTTPResponse,
)
from .http.parser import HTTPParser
from .model import Service
from .services.files import FileService
from .utils.limits import LimitType, unlimit
from .utils.logging import (
	LogLevel,
	debug,
	error,
	event,
	exception,
	info,
	logged,
	warning,
)


@dataclass(slots=True)
class ServerState:
	"""The cancellation signal of a server run. It is passed explicitly to
	the accept loop and to every connection handler, and only ever goes
	from running to stopped."""

	isRunning: bool = True
	# Set once the listening socket is bound, with the actual address
	address: tuple[str, int] | None = None
	ready: threading.Event = field(default_factory=threading.Event)

	def stop(self) -> None:
		if self.isRunning:
			info("Server stopping…")
		self.isRunning = False

	def check(self) -> None:
		"""Raises `CancellationError` once the server was asked to stop."""
		if not self.isRunning:
			raise CancellationError("Server stopped")

	def onException(
		self, loop: asyncio.AbstractEventLoop, context: dict[str, Any]
	) -> None:
		e = context.get("exception")
		if e:
			exception(e)


class ServerOptions(NamedTuple):
	backlog: int = 1_000
	# Maximum time to wait for the request head of a new connection
	timeout: float = 10.0
	# This is the polling timeout for accepting new requests, which is also
	# how long it takes at most to notice a stop.
	polling: float = 1.0
	readsize: int = 4_096
	logRequests: bool = LOG_REQUESTS
	stopSignals: bool = True
	# Maximum number of connections handled at once, `None` is unbounded
	maxInflight: int | None = None


OPTIONS: ServerOptions = ServerOptions()

SERVER_ERROR: bytes = (
	b"HTTP/1.1 500 Internal Server Error\r\n"
	b"Content-Type: text/plain; charset=utf-8\r\n"
	b"Content-Length: 21\r\n"
	b"Connection: close\r\n"
	b"\r\n"
	b"Internal Server Error"
)


class AIOSocketBodyWriter(HTTPBodyWriter):
	"""Specialized body writer to work with AIO sockets."""

	def __init__(
		self,
		client: "socket.socket",
		loop: asyncio.AbstractEventLoop,
	) -> None:
		super().__init__()
		self.client: socket.socket = client
		self.loop: asyncio.AbstractEventLoop = loop

	async def _writeBytes(self, chunk: bytes) -> bool:
		if chunk:
			await self.loop.sock_sendall(self.client, chunk)
		return True

	async def _writeFile(self, body: HTTPBodyFile, size: int = 64_000) -> bool:
		# `sock_sendfile` rejects a zero count
		if not body.length:
			return True
		try:
			sent = await self.loop.sock_sendfile(self.client, body.file, 0, body.length)
		except (BrokenPipeError, ConnectionResetError):
			raise
		except OSError as e:
			raise StreamError(f"Could not stream file: {body.path}") from e
		self.written += sent
		if sent != body.length:
			raise StreamError(
				f"File shrunk while streaming, {body.length - sent} bytes missing: {body.path}"
			)
		return True


class AIOSocketServer:
	"""AsyncIO backend using sockets directly."""

	@classmethod
	async def OnRequest(
		cls,
		service: Service,
		client: socket.socket,
		*,
		loop: asyncio.AbstractEventLoop,
		options: ServerOptions,
		state: ServerState,
	) -> None:
		"""Asynchronous worker, reading a single request from the socket and
		answering it in the context of the service. The connection is always
		closed afterwards."""
		size: int = options.readsize
		buffer = bytearray(size)
		parser: HTTPParser = HTTPParser()
		writer: AIOSocketBodyWriter = AIOSocketBodyWriter(client, loop)
		status: HTTPProcessingStatus = HTTPProcessingStatus.Processing
		req: HTTPRequest | None = None
		try:
			while status is HTTPProcessingStatus.Processing:
				try:
					n = await asyncio.wait_for(
						loop.sock_recv_into(client, buffer),
						timeout=options.timeout,
					)
				except asyncio.TimeoutError:
					status = HTTPProcessingStatus.Timeout
					break
				if not n:
					# A no-data means a close
					status = HTTPProcessingStatus.NoData
					break
				for atom in parser.feed(bytes(buffer[:n])):
					if isinstance(atom, HTTPRequest):
						req = atom
					elif atom is HTTPProcessingStatus.Complete:
						status = atom
					elif atom is HTTPProcessingStatus.BadFormat:
						status = atom
			if req is not None and status is HTTPProcessingStatus.Complete:
				res = await cls.SendResponse(
					req, service, writer, logRequests=options.logRequests
				)
				if res is None:
					warning("Sending Response Failed", Method=req.method, Path=req.path)
				elif not state.isRunning:
					info("Completed request during shutdown", Path=req.path)
			elif status is HTTPProcessingStatus.BadFormat:
				warning("Malformed request", Client=f"{id(client):x}")
				await cls.SendResponse(
					HTTPRequest("GET", "/"), None, writer, logRequests=False
				)
			elif status is HTTPProcessingStatus.Timeout:
				warning("Client timed out", Client=f"{id(client):x}")
			elif parser.read:
				warning(
					"Client did not feed a complete request",
					ReadCount=parser.read,
					Status=status.name,
				)
		except (BrokenPipeError, ConnectionResetError):
			# Client did an early close
			logged(LogLevel.Debug) and debug("Client closed the connection early")
		except Exception as e:
			exception(e)
		finally:
			client.close()

	@staticmethod
	async def SendResponse(
		request: HTTPRequest,
		service: Service | None,
		writer: HTTPBodyWriter,
		*,
		logRequests: bool = True,
	) -> HTTPResponse | None:
		"""Processes the request within the service and sends the response
		using the given writer. Without a service, a `400 Bad Request` is
		sent. Returns the response when it was fully sent."""
		req: HTTPRequest = request
		res: HTTPResponse | None = None
		if service is None:
			res = req.badRequest()
		else:
			try:
				r: HTTPResponse | Awaitable[HTTPResponse] = service.process(req)
				res = r if isinstance(r, HTTPResponse) else await r
			except Exception as e:
				exception(e, f"Failed processing {req.method} {req.path}")
				await writer.write(SERVER_ERROR)
				return None
		res.setHeader("Connection", "close")
		if logRequests:
			event(req.method, req.path, Status=res.status)
		try:
			# The head commits the response, any error past this point can
			# only close the connection.
			await writer.write(res.head())
			try:
				await writer.write(res.body)
			except StreamError as e:
				warning(
					"Response stream interrupted",
					Path=req.path,
					Written=writer.written,
					Reason=str(e),
				)
				return None
		finally:
			res.close()
		return res

	@staticmethod
	def Bind(host: str, port: int, backlog: int) -> socket.socket:
		"""Creates the listening socket, raising `BindError` when the address
		is invalid or unavailable."""
		try:
			infos = socket.getaddrinfo(
				host, port, type=socket.SOCK_STREAM, flags=socket.AI_PASSIVE
			)
		except (OSError, UnicodeError) as e:
			raise BindError(f"Invalid listen address {host}:{port}", host, port) from e
		# `localhost` may resolve to `::1` first, but browsers and tools
		# mostly try IPv4 first.
		infos.sort(key=lambda _: _[0] != socket.AF_INET)
		family, kind, proto, _, address = infos[0]
		server = socket.socket(family, kind, proto)
		try:
			server.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
			server.bind(address)
			# The argument is the backlog of connections that will be accepted
			# before they are refused.
			server.listen(backlog)
		except OSError as e:
			server.close()
			raise BindError(f"Unable to bind to {host}:{port}: {e}", host, port) from e
		# This is what we need to use it with asyncio
		server.setblocking(False)
		return server

	@classmethod
	async def Accept(
		cls,
		server: socket.socket,
		*,
		loop: asyncio.AbstractEventLoop,
		state: ServerState,
		polling: float,
	) -> socket.socket | None:
		"""Waits for the next connection, returning `None` when the polling
		timeout expires and raising `CancellationError` once stopped."""
		state.check()
		try:
			client, _ = await asyncio.wait_for(
				loop.sock_accept(server), timeout=polling or 1.0
			)
		except asyncio.TimeoutError:
			state.check()
			return None
		return client

	@classmethod
	async def Serve(
		cls,
		service: Service,
		config: ServerConfig,
		options: ServerOptions = OPTIONS,
		state: ServerState | None = None,
	) -> None:
		"""Main server coroutine."""
		state = state or ServerState()
		try:
			server = cls.Bind(config.host, config.port, options.backlog)
		except BindError as e:
			error(str(e), "HOSTPORTERR", Host=config.host, Port=config.port)
			raise
		state.address = server.getsockname()[:2]
		loop = asyncio.get_running_loop()
		tasks: set[asyncio.Task[None]] = set()
		inflight: asyncio.Semaphore | None = (
			asyncio.Semaphore(options.maxInflight) if options.maxInflight else None
		)

		# Registers handlers for signals and exception (so that we log them).
		# Signal handlers can only be installed from the main thread.
		if (
			options.stopSignals
			and threading.current_thread() is threading.main_thread()
		):
			loop.add_signal_handler(SIGINT, state.stop)
			loop.add_signal_handler(SIGTERM, state.stop)
		loop.set_exception_handler(state.onException)

		def release(task: asyncio.Task[None]) -> None:
			tasks.discard(task)
			if inflight:
				inflight.release()

		try:
			await service.start()
			info(f"Serving {config.root} on {config.url}", icon="🚀")
			info("Press Ctrl+C to stop.")
			state.ready.set()
			while True:
				if inflight:
					await inflight.acquire()
				try:
					client = await cls.Accept(
						server, loop=loop, state=state, polling=options.polling
					)
				except CancellationError:
					if inflight:
						inflight.release()
					break
				except OSError as e:
					if inflight:
						inflight.release()
					# This can be: [OSError] [Errno 24] Too many open files
					if e.errno == 24:
						await asyncio.sleep(0.1)
					else:
						exception(e)
					continue
				if client is None:
					if inflight:
						inflight.release()
					continue
				task = loop.create_task(
					cls.OnRequest(service, client, loop=loop, options=options, state=state)
				)
				tasks.add(task)
				task.add_done_callback(release)
		finally:
			server.close()
			# In-flight requests are left to complete
			if tasks:
				info("Waiting for in-flight requests", Count=len(tasks))
				await asyncio.gather(*tasks, return_exceptions=True)
			if (
				options.stopSignals
				and threading.current_thread() is threading.main_thread()
			):
				loop.remove_signal_handler(SIGINT)
				loop.remove_signal_handler(SIGTERM)
			await service.stop()
			info("Server stopped")


def run(
	config: ServerConfig | None = None,
	service: Service | None = None,
	*,
	options: ServerOptions = OPTIONS,
	state: ServerState | None = None,
) -> None:
	"""High level function to run the server until it is interrupted. Raises
	`BindError` when the listen address can't be bound."""
	config = config or ServerConfig.Create()
	unlimit(LimitType.Files)
	try:
		asyncio.run(
			AIOSocketServer.Serve(
				service or FileService(config), config, options, state
			)
		)
	except KeyboardInterrupt:
		event("ManualShutdown")
	event("EOK")


# EOF
