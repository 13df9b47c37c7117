import os

import pytest

from dvpanel.errors import AccessDenied, MalformedPath
from dvpanel.services.path_jail import PathJail, from_panel_path, resolve_safe_path


@pytest.fixture
def jail():
    return PathJail("/srv/www")


def test_resolves_nested_relative_path(jail):
    assert jail.resolve("site/index.html") == "/srv/www/site/index.html"


def test_inner_parent_segments_collapse_inside_root(jail):
    assert jail.resolve("site/../other/./a.txt") == "/srv/www/other/a.txt"


def test_dot_resolves_to_root(jail):
    assert jail.resolve(".") == "/srv/www"


@pytest.mark.parametrize(
    "attempt",
    [
        "../etc/passwd",
        "..",
        "../../..",
        "site/../../etc/passwd",
        "..\\..\\etc\\passwd",
        "/etc/passwd",
        "/srv/www-evil/x",
        "/srv",
    ],
)
def test_escapes_are_denied(jail, attempt):
    with pytest.raises(AccessDenied):
        jail.resolve(attempt)


def test_sibling_with_shared_prefix_is_not_inside():
    jail = PathJail("/srv/www")
    assert not jail.contains("/srv/www-evil")
    assert jail.contains("/srv/www")
    assert jail.contains("/srv/www/a")


def test_absolute_path_already_inside_root_is_accepted(jail):
    assert jail.resolve("/srv/www/site/a.txt") == "/srv/www/site/a.txt"


@pytest.mark.parametrize("user_path", ["site/index.html", ".", "a/b/../c", "/srv/www/x"])
def test_resolution_is_idempotent(jail, user_path):
    once = jail.resolve(user_path)
    assert jail.resolve(once) == once


def test_root_mode_strips_leading_parents():
    jail = PathJail("/")
    assert jail.is_root
    assert jail.resolve("../../etc/hosts") == "/etc/hosts"
    assert jail.resolve("..") == "/"
    assert jail.resolve("var/log") == "/var/log"


@pytest.mark.parametrize("user_path", ["../../etc/hosts", "var/log", "/tmp"])
def test_root_mode_is_idempotent(user_path):
    jail = PathJail("/")
    once = jail.resolve(user_path)
    assert jail.resolve(once) == once


@pytest.mark.parametrize("bad", ["", "   ", "a\x00b", None, 42])
def test_malformed_input_is_rejected(jail, bad):
    with pytest.raises(MalformedPath):
        jail.resolve(bad)


def test_empty_root_is_rejected():
    with pytest.raises(MalformedPath):
        PathJail("")


def test_denial_message_does_not_leak_host_paths(jail):
    with pytest.raises(AccessDenied) as excinfo:
        jail.resolve("../../etc/shadow")
    message = str(excinfo.value)
    assert "/srv" not in message
    assert "shadow" not in message


def test_denied_attempts_are_logged(jail, caplog):
    with caplog.at_level("WARNING", logger="dvpanel.services.path_jail"):
        with pytest.raises(AccessDenied):
            jail.resolve("../secret")
    assert any("../secret" in r.getMessage() for r in caplog.records)


def test_relative_to_base(jail):
    assert jail.relative_to_base("/srv/www") == ""
    assert jail.relative_to_base("/srv/www/a/b.txt") == "a/b.txt"
    with pytest.raises(AccessDenied):
        jail.relative_to_base("/srv/other")


def test_resolve_safe_path_uses_a_fresh_jail(tmp_path):
    assert resolve_safe_path("a.txt", tmp_path) == os.path.join(str(tmp_path), "a.txt")
    with pytest.raises(AccessDenied):
        resolve_safe_path("../a.txt", tmp_path)


@pytest.mark.parametrize(
    "panel_path, expected",
    [("/", "."), ("/site/a.txt", "site/a.txt"), ("site", "site"), ("\\site\\b", "site/b")],
)
def test_from_panel_path(panel_path, expected):
    assert from_panel_path(panel_path) == expected


def test_from_panel_path_rejects_empty():
    with pytest.raises(MalformedPath):
        from_panel_path("  ")


def test_symlinked_directory_outside_root_is_denied(tmp_path):
    root = tmp_path / "root"
    root.mkdir()
    os.symlink(tmp_path, root / "escape")
    jail = PathJail(root)
    with pytest.raises(AccessDenied):
        jail.resolve("escape/anything.txt")
    with pytest.raises(AccessDenied):
        jail.resolve(str(root / "escape"))


def test_root_reached_through_a_symlink_is_accepted(tmp_path):
    real = tmp_path / "real"
    (real / "a").mkdir(parents=True)
    os.symlink(real, tmp_path / "alias")
    jail = PathJail(tmp_path / "alias")
    assert jail.resolve("a") == os.path.join(str(tmp_path / "alias"), "a")
