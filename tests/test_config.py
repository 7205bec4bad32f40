import os
from pathlib import Path

import pytest

from blogserver.config import CONTENT_TYPES, ServerConfig
from blogserver.errors import BindError
from blogserver.utils.files import contentType, extension, isWithin
from blogserver.utils.uri import URI, withTrailingSlash


def test_defaults(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
	monkeypatch.chdir(tmp_path)
	config = ServerConfig.Create("http://localhost:5000/")
	assert config.url == "http://localhost:5000/"
	assert config.host == "localhost"
	assert config.port == 5000
	assert config.root == Path(os.path.normpath(tmp_path.absolute()))
	assert config.fallbackRoot == config.root.parent
	assert config.roots == (config.root, config.root.parent)
	assert config.contained


def test_trailing_slash_is_appended():
	assert ServerConfig.Create("http://localhost:8080").url == "http://localhost:8080/"
	assert withTrailingSlash("http://a/b/") == "http://a/b/"


def test_filesystem_root_has_no_fallback():
	config = ServerConfig.Create("http://localhost:5000/", Path("/"))
	assert config.fallbackRoot is None
	assert config.roots == (Path("/"),)


def test_fallback_can_be_disabled(tmp_path: Path):
	config = ServerConfig.Create("http://localhost:5000/", tmp_path, fallbackRoot=None)
	assert config.fallbackRoot is None


def test_wildcard_hosts_bind_all_interfaces():
	assert ServerConfig.Create("http://+:8000/").host == "0.0.0.0"
	assert ServerConfig.Create("http://*:8000/").host == "0.0.0.0"


def test_default_port():
	assert ServerConfig.Create("http://example.test/").port == 80


@pytest.mark.parametrize(
	"url",
	[
		"localhost:5000",
		"ftp://localhost:21/",
		"http://localhost:port/",
		"http://localhost:70000/",
		"http:///",
	],
)
def test_malformed_urls(url: str):
	with pytest.raises(BindError):
		ServerConfig.Create(url)


def test_uri_ipv6():
	uri = URI.Parse("http://[::1]:8080/")
	assert uri.host == "::1"
	assert uri.port == 8080
	assert str(uri) == "http://[::1]:8080/"
	assert URI.Parse("http://[::1]/").port == 80


def test_content_types():
	assert contentType("data.json", CONTENT_TYPES) == "application/json; charset=utf-8"
	assert contentType("index.HTML", CONTENT_TYPES) == "text/html; charset=utf-8"
	assert contentType("photo.JPEG", CONTENT_TYPES) == "image/jpeg"
	assert contentType("archive.xyz", CONTENT_TYPES) == "application/octet-stream"
	assert contentType("README", CONTENT_TYPES) == "application/octet-stream"
	assert contentType("archive.tar.gz", CONTENT_TYPES) == "application/octet-stream"


def test_extension():
	assert extension("a/b/c.Json") == ".json"
	assert extension(".json") == ".json"
	assert extension("Makefile") == ""


def test_custom_content_types_are_case_insensitive(tmp_path: Path):
	config = ServerConfig.Create(
		"http://localhost:5000/", tmp_path, contentTypes={".MD": "text/markdown"}
	)
	assert contentType("post.md", config.contentTypes) == "text/markdown"


def test_is_within():
	assert isWithin("/srv/blog/a.html", "/srv/blog")
	assert isWithin("/srv/blog", "/srv/blog")
	assert not isWithin("/srv/blog/../secret.txt", "/srv/blog")
	assert not isWithin("/srv/blogger/a.html", "/srv/blog")
	assert isWithin("/etc/passwd", "/")


def test_direct_construction_uses_default_table(tmp_path: Path):
	config = ServerConfig(
		url="http://localhost:5000/",
		host="localhost",
		port=5000,
		root=tmp_path,
		fallbackRoot=None,
	)
	assert config.contentTypes is CONTENT_TYPES
	assert config.contained
	assert config.roots == (tmp_path,)


def test_config_is_immutable(tmp_path: Path):
	config = ServerConfig.Create("http://localhost:5000/", tmp_path)
	with pytest.raises(AttributeError):
		config.root = Path("/")  # type: ignore[misc]
	with pytest.raises(TypeError):
		config.contentTypes[".md"] = "text/markdown"  # type: ignore[index]


# EOF
