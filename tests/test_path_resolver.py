"""
Tests for path normalization.
"""

import pytest

from filedrive.core.exceptions import InvalidPathError
from filedrive.services.storage.paths import PathResolver


@pytest.mark.parametrize(
    "path,expected",
    [
        ("foo.txt", "foo.txt"),
        ("/foo.txt", "foo.txt"),
        ("bar//baz/foo.txt", "bar/baz/foo.txt"),
        ("./bar/./foo.txt", "bar/foo.txt"),
        ("bar/baz/../foo.txt", "bar/foo.txt"),
        ("bar\\foo.txt", "bar/foo.txt"),
        ("bar/", "bar"),
    ],
)
def test_normalize(path, expected):
    assert PathResolver().normalize(path) == expected


@pytest.mark.parametrize(
    "path",
    ["", "   ", "/", ".", "..", "../foo.txt", "bar/../../foo.txt", "foo\x00.txt"],
)
def test_normalize_rejects(path):
    with pytest.raises(InvalidPathError) as exc_info:
        PathResolver().normalize(path)

    assert exc_info.value.status_code == 422


def test_resolve_under_root(tmp_path):
    resolver = PathResolver(tmp_path)

    assert resolver.resolve("bar/foo.txt") == tmp_path.resolve() / "bar" / "foo.txt"
    assert resolver.relative(resolver.resolve("bar/foo.txt")) == "bar/foo.txt"


def test_resolve_rejects_escape(tmp_path):
    with pytest.raises(InvalidPathError):
        PathResolver(tmp_path / "root").resolve("../secret.txt")


def test_resolve_requires_root():
    with pytest.raises(RuntimeError):
        PathResolver().resolve("foo.txt")
