import os
from dataclasses import dataclass, field
from os import getenv
from pathlib import Path
from types import MappingProxyType
from typing import Mapping

from .errors import BindError
from .utils.uri import URI, withTrailingSlash

URL: str = withTrailingSlash(getenv("BLOGSERVER_URL", "http://localhost:5000/"))

LOG_REQUESTS: bool = getenv("BLOGSERVER_LOG_REQUESTS", "1") == "1"

DEFAULT_DOCUMENT: str = "/index.html"

CONTENT_TYPES: Mapping[str, str] = MappingProxyType(
	{
		".html": "text/html; charset=utf-8",
		".htm": "text/html; charset=utf-8",
		".css": "text/css; charset=utf-8",
		".js": "application/javascript; charset=utf-8",
		".json": "application/json; charset=utf-8",
		".svg": "image/svg+xml",
		".png": "image/png",
		".jpg": "image/jpeg",
		".jpeg": "image/jpeg",
		".gif": "image/gif",
		".ico": "image/x-icon",
	}
)


@dataclass(slots=True, frozen=True)
class ServerConfig:
	"""The configuration of a server run, fixed at startup."""

	url: str
	host: str
	port: int
	root: Path
	fallbackRoot: Path | None
	contentTypes: Mapping[str, str] = field(default_factory=lambda: CONTENT_TYPES)
	# When set, resolved paths must stay within the root they were joined to
	contained: bool = True

	@staticmethod
	def Create(
		url: str | None = None,
		root: str | Path | None = None,
		*,
		fallbackRoot: str | Path | None | bool = True,
		contentTypes: Mapping[str, str] | None = None,
		contained: bool = True,
	) -> "ServerConfig":
		"""Creates a configuration listening on `url` (with a trailing slash
		appended when missing) and serving `root`, which defaults to the
		current working directory. The fallback root defaults to the parent
		of the root; pass `None` to disable it."""
		url = withTrailingSlash(url or URL)
		try:
			uri = URI.Parse(url)
		except ValueError as e:
			raise BindError(f"Malformed listen URL: {url}") from e
		base: Path = Path(os.path.normpath(Path(root or os.getcwd()).absolute()))
		fallback: Path | None
		if fallbackRoot is True:
			fallback = base.parent if base.parent != base else None
		elif fallbackRoot is False or fallbackRoot is None:
			fallback = None
		else:
			fallback = Path(os.path.normpath(Path(fallbackRoot).absolute()))
		return ServerConfig(
			url=url,
			host=uri.bindHost,
			port=uri.port,
			root=base,
			fallbackRoot=fallback,
			contentTypes=(
				CONTENT_TYPES
				if contentTypes is None
				else MappingProxyType({k.lower(): v for k, v in contentTypes.items()})
			),
			contained=contained,
		)

	@property
	def roots(self) -> tuple[Path, ...]:
		"""The roots in resolution order."""
		return (
			(self.root,) if self.fallbackRoot is None else (self.root, self.fallbackRoot)
		)


# EOF
