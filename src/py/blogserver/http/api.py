from abc import ABC, abstractmethod
from typing import Any, Generic, TypeVar

from .status import HTTP_STATUS

T = TypeVar("T")

# -----------------------------------------------------------------------------
#
# API
#
# -----------------------------------------------------------------------------

# --
# == HTTP Request Response API
#
# Defines the high level API functions (orthogonal to the underlying model)
# to create responses from a request.

TEXT_PLAIN: str = "text/plain; charset=utf-8"


class ResponseFactory(ABC, Generic[T]):
	@abstractmethod
	def respond(
		self,
		content: Any = None,
		contentType: str | None = None,
		status: int = 200,
		headers: dict[str, str] | None = None,
		message: str | None = None,
	) -> T: ...

	def error(
		self,
		status: int,
		content: str | None = None,
		contentType: str = TEXT_PLAIN,
		headers: dict[str, str] | None = None,
	) -> T:
		message = HTTP_STATUS.get(status, "Server Error")
		return self.respond(
			content=message if content is None else content,
			contentType=contentType,
			status=status,
			message=message,
			headers=headers,
		)

	def notFound(
		self,
		content: str = "Not Found",
		contentType: str = TEXT_PLAIN,
		*,
		status: int = 404,
	) -> T:
		return self.error(status, content=content, contentType=contentType)

	def badRequest(
		self,
		content: str = "Bad Request",
		contentType: str = TEXT_PLAIN,
	) -> T:
		return self.error(400, content=content, contentType=contentType)


# EOF
