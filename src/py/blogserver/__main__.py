import argparse
import sys

from .config import URL, ServerConfig
from .errors import BindError
from .server import run
from .utils.logging import error


def main(args: list[str] | None = None) -> int:
	parser = argparse.ArgumentParser(
		prog="blogserver",
		description="Serves the current directory (and its parent as a fallback) over HTTP",
		formatter_class=argparse.ArgumentDefaultsHelpFormatter,
	)
	parser.add_argument(
		"url",
		metavar="URL",
		nargs="?",
		default=URL,
		help="The URL prefix to listen on, a trailing slash is added when missing",
	)
	options = parser.parse_args(args=args)
	try:
		config = ServerConfig.Create(options.url)
	except BindError as e:
		error(str(e), "URLERR")
		return 1
	try:
		run(config)
	except BindError:
		# Already reported by the server
		return 1
	return 0


if __name__ == "__main__":
	sys.exit(main(sys.argv[1:]))

# EOF
