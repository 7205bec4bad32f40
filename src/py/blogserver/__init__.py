from .config import ServerConfig  # NOQA: F401
from .errors import (  # NOQA: F401
	BindError,
	CancellationError,
	NotFoundError,
	ServerError,
	StreamError,
)
from .http.model import HTTPRequest, HTTPResponse  # NOQA: F401
from .model import Service  # NOQA: F401
from .server import ServerOptions, ServerState, run  # NOQA: F401
from .services.files import FileService  # NOQA: F401

__version__: str = "1.0.0"

# EOF
