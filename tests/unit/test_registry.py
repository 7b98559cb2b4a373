"""Tests for entry point plugin discovery."""

from unittest.mock import MagicMock, patch

from shipyard_core.registry import ENTRY_POINT_GROUP, discover_plugins


def _entry_point(name, factory):
    ep = MagicMock()
    ep.name = name
    ep.load.return_value = factory
    return ep


def _patch_entry_points(*eps):
    entry_points = MagicMock()
    entry_points.select.return_value = list(eps)
    return patch("importlib.metadata.entry_points", return_value=entry_points)


def test_discovers_plugins(mock_plugin):
    with _patch_entry_points(_entry_point("digest", lambda: mock_plugin)) as mock_eps:
        plugins = discover_plugins()

    assert plugins == {"digest": mock_plugin}
    mock_eps.return_value.select.assert_called_once_with(group=ENTRY_POINT_GROUP)


def test_skips_non_plugins():
    with _patch_entry_points(_entry_point("bad", lambda: object())):
        assert discover_plugins() == {}


def test_skips_duplicate_names(mock_plugin):
    with _patch_entry_points(
        _entry_point("first", lambda: mock_plugin),
        _entry_point("second", lambda: mock_plugin),
    ):
        assert list(discover_plugins()) == ["digest"]


def test_broken_entry_point_is_logged_not_raised(mock_plugin, caplog):
    broken = MagicMock()
    broken.name = "broken"
    broken.load.side_effect = ImportError("no module named shipyard_missing")

    with _patch_entry_points(broken, _entry_point("digest", lambda: mock_plugin)):
        plugins = discover_plugins()

    assert list(plugins) == ["digest"]
    assert "broken" in caplog.text
