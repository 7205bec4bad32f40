"""
Site Preview Example

Serves a generated site directory (instead of the current directory) on
all interfaces, with at most 64 connections handled at once.

Usage:
    python preview.py path/to/site/blog [URL]

Test with:
    http://localhost:8000/             # Serves index.html
    http://localhost:8000/theme.css    # Falls back to path/to/site/theme.css
"""

import sys

from blogserver import ServerConfig, ServerOptions, run
from blogserver.utils.logging import info

if __name__ == "__main__":
	root = sys.argv[1] if len(sys.argv) > 1 else "."
	url = sys.argv[2] if len(sys.argv) > 2 else "http://+:8000/"
	config = ServerConfig.Create(url, root)
	info("Starting site preview", Root=str(config.root))
	run(config, options=ServerOptions(maxInflight=64))

# EOF
