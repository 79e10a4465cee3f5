from utils.config import LayoutSettings


def test_defaults() -> None:
    settings = LayoutSettings()

    assert settings.rank_separation == 60
    assert settings.node_separation == 60
    assert (settings.node_width, settings.node_height) == (220, 100)
    assert (settings.padding_left, settings.padding_right) == (20, 20)
    assert (settings.padding_top, settings.padding_bottom) == (30, 20)


def test_from_env_overrides(monkeypatch) -> None:
    monkeypatch.setenv("FLOW_LAYOUT_RANKSEP", "90")
    monkeypatch.setenv("FLOW_NODE_WIDTH", "180.5")
    monkeypatch.delenv("FLOW_LAYOUT_NODESEP", raising=False)

    settings = LayoutSettings.from_env()

    assert settings.rank_separation == 90
    assert settings.node_width == 180.5
    assert settings.node_separation == 60


def test_from_env_ignores_invalid_numbers(monkeypatch) -> None:
    monkeypatch.setenv("FLOW_NODE_HEIGHT", "tall")

    assert LayoutSettings.from_env().node_height == 100
