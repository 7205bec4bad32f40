import os
from pathlib import Path
from typing import Mapping

DEFAULT_CONTENT_TYPE: str = "application/octet-stream"


def extension(path: Path | str) -> str:
	"""Returns the lowercase extension of the path's file name including the
	leading dot, so that `.json` and `data.JSON` both yield `.json`."""
	name = os.path.basename(str(path))
	i = name.rfind(".")
	return name[i:].lower() if i != -1 else ""


def contentType(
	path: Path | str,
	types: Mapping[str, str],
	default: str = DEFAULT_CONTENT_TYPE,
) -> str:
	"""Guesses the content type from the given path's extension"""
	return types.get(extension(path), default)


def isWithin(path: Path | str, root: Path | str) -> bool:
	"""Tells if `path` is `root` or one of its descendants, after lexical
	normalization of both."""
	base = os.path.normpath(str(root))
	target = os.path.normpath(str(path))
	return target == base or target.startswith(base.rstrip(os.sep) + os.sep)


# EOF
