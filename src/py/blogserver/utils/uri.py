from urllib.parse import urlparse

DEFAULT_PORTS: dict[str, int] = {"http": 80}

# HttpListener-style prefixes use these to mean "every interface"
WILDCARD_HOSTS: tuple[str, ...] = ("+", "*")


class URI:
	"""A parsed listen URL, like `http://localhost:5000/`."""

	__slots__ = ("scheme", "host", "port", "path")

	@classmethod
	def Parse(cls, link: "URI|str") -> "URI":
		"""Parses the given link, raising a `ValueError` when it is not an
		absolute `http` URL with a host."""
		if isinstance(link, URI):
			return link
		res = urlparse(link)
		if not res.scheme or res.scheme.lower() not in DEFAULT_PORTS:
			raise ValueError(f"Unsupported URL scheme: {link}")
		if not res.netloc:
			raise ValueError(f"URL has no host: {link}")
		# NOTE: `urlparse` rejects `+` and `*` as hostnames, so we split the
		# network location ourselves.
		host, _, port = res.netloc.rpartition(":")
		if not host or port.endswith("]"):
			host, port = res.netloc, ""
		if host.startswith("[") and host.endswith("]"):
			host = host[1:-1]
		if not host:
			raise ValueError(f"URL has no host: {link}")
		if port and not port.isdigit():
			raise ValueError(f"URL has an invalid port: {link}")
		scheme = res.scheme.lower()
		port_number = int(port) if port else DEFAULT_PORTS[scheme]
		if not 0 <= port_number <= 65535:
			raise ValueError(f"URL port is out of range: {link}")
		return URI(scheme=scheme, host=host, port=port_number, path=res.path or "/")

	def __init__(
		self,
		*,
		scheme: str,
		host: str,
		port: int,
		path: str = "/",
	):
		self.scheme: str = scheme
		self.host: str = host
		self.port: int = port
		self.path: str = path

	@property
	def bindHost(self) -> str:
		"""The host to bind the listening socket to."""
		return "0.0.0.0" if self.host in WILDCARD_HOSTS else self.host  # nosec: B104

	def __eq__(self, other: object) -> bool:
		if isinstance(other, str):
			return str(self) == other
		elif isinstance(other, URI):
			return (
				self.scheme == other.scheme
				and self.host == other.host
				and self.port == other.port
				and self.path == other.path
			)
		else:
			return False

	def __repr__(self) -> str:
		return f"URI(scheme={self.scheme} host={self.host} port={self.port} path={self.path})"

	def __str__(self) -> str:
		host = f"[{self.host}]" if ":" in self.host else self.host
		return f"{self.scheme}://{host}:{self.port}{self.path}"


def withTrailingSlash(url: str) -> str:
	return url if url.endswith("/") else f"{url}/"


# EOF
