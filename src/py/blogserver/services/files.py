import os
from pathlib import Path
from typing import NamedTuple
from urllib.parse import unquote

from ..config import DEFAULT_DOCUMENT, ServerConfig
from ..errors import NotFoundError
from ..http.model import HTTPBodyFile, HTTPRequest, HTTPResponse
from ..model import Service
from ..utils.files import contentType, isWithin
from ..utils.logging import debug, logged, LogLevel, warning

# Characters stripped from the start of a decoded path before joining it
SEPARATORS: str = "/" + os.sep + (os.altsep or "")


class ResolvedPath(NamedTuple):
	"""The outcome of resolving a request path to a local file."""

	path: str
	local: Path
	root: Path
	contentType: str


def decodePath(path: str) -> str:
	"""URL-decodes the request path, substituting the default document for
	an empty or root path."""
	decoded: str = unquote(path or "")
	if not decoded.strip() or decoded == "/":
		return DEFAULT_DOCUMENT
	else:
		return decoded


def isRegularFile(path: Path) -> bool:
	"""Tells if the path is a regular file, treating errors like a name too
	long or a denied traversal as a missing file."""
	try:
		return path.is_file()
	except (OSError, ValueError):
		return False


class FileService(Service):
	"""Serves files from the primary root, falling back to the fallback
	root when the primary root does not have them."""

	def __init__(self, config: ServerConfig | None = None):
		self.config: ServerConfig = config or ServerConfig.Create()
		super().__init__()

	@property
	def root(self) -> Path:
		return self.config.root

	@property
	def fallbackRoot(self) -> Path | None:
		return self.config.fallbackRoot

	def guessContentType(self, path: Path) -> str:
		return contentType(path, self.config.contentTypes)

	def candidate(self, root: Path, relative: str) -> Path | None:
		"""Joins the relative path to the root, returning `None` when the
		result escapes the root and containment is enforced."""
		if not self.config.contained:
			return root.joinpath(relative)
		local = Path(os.path.normpath(root.joinpath(relative)))
		return local if isWithin(local, root) else None

	def resolve(self, path: str) -> ResolvedPath:
		"""Resolves the raw request path to a regular file, looking in the
		primary root first and the fallback root second. Raises
		`NotFoundError` when neither has it."""
		decoded: str = decodePath(path)
		relative: str = decoded.lstrip(SEPARATORS)
		escaped: bool = False
		for root in self.config.roots:
			local = self.candidate(root, relative)
			if local is None:
				escaped = True
			elif isRegularFile(local):
				return ResolvedPath(
					path=decoded,
					local=local,
					root=root,
					contentType=self.guessContentType(local),
				)
		if escaped:
			warning("Rejected path escaping the served roots", Path=decoded)
		raise NotFoundError(decoded)

	def process(self, request: HTTPRequest) -> HTTPResponse:
		try:
			resolved = self.resolve(request.path)
		except NotFoundError as e:
			logged(LogLevel.Debug) and debug("File not found", Path=e.path)
			return request.notFound()
		try:
			body = HTTPBodyFile.Open(resolved.local)
		except OSError as e:
			# The file may have been removed or made unreadable since it
			# was resolved.
			warning(
				"Could not open file",
				Path=str(resolved.local),
				Error=e.__class__.__name__,
			)
			return request.notFound()
		return request.respond(body, contentType=resolved.contentType)


# EOF
