# -----------------------------------------------------------------------------
#
# ERRORS
#
# -----------------------------------------------------------------------------


class ServerError(Exception):
	"""Base class for the errors raised by the server."""


class BindError(ServerError):
	"""The listen address is unavailable or invalid. This is fatal."""

	def __init__(self, message: str, host: str | None = None, port: int | None = None):
		super().__init__(message)
		self.host: str | None = host
		self.port: int | None = port


class NotFoundError(ServerError):
	"""The requested path does not resolve to a regular file in any root."""

	def __init__(self, path: str):
		super().__init__(f"Not Found: {path}")
		self.path: str = path


class StreamError(ServerError):
	"""An I/O failure after the response head was committed. The connection
	can only be closed."""


class CancellationError(ServerError):
	"""The server was asked to stop. Expected during shutdown."""


# EOF
