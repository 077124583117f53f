import json
import logging

import pytest

from kitbuilder import main as entry
from kitbuilder.errors import AuthError, ConfigError
from kitbuilder.sources.base import CategoryResult


@pytest.fixture(autouse=True)
def restore_logging(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    logger = logging.getLogger(entry.LOGGER_NAME)
    saved = logger.handlers[:]
    yield
    for handler in logger.handlers:
        if handler not in saved:
            handler.close()
    logger.handlers = saved


def write_config(path, **fields):
    path.write_text(json.dumps(fields))
    return str(path)


def test_main_builds_into_fresh_output_dir(tmp_path, monkeypatch):
    out = tmp_path / "sounds"
    out.mkdir()
    (out / "stale.mp3").write_bytes(b"old")
    seen = []

    def fake_build(config):
        seen.append(config)
        return [CategoryResult(category="kick", requested=1, selected=1, downloaded=1)]

    monkeypatch.setattr(entry, "build_kit", fake_build)
    path = write_config(tmp_path / "config.json", output_dir=str(out),
                        categories=[{"name": "kick", "number_sounds": 1}])

    assert entry.main(path) == 0
    assert out.is_dir()
    assert not (out / "stale.mp3").exists()
    assert seen[0].categories[0].name == "kick"
    assert (tmp_path / "kitbuilder.log").exists()


def test_main_bad_config_exits_nonzero(tmp_path, monkeypatch):
    monkeypatch.setattr(entry, "build_kit", lambda config: pytest.fail("should not build"))
    (tmp_path / "config.json").write_text("{oops")
    assert entry.main(str(tmp_path / "config.json")) == 1


def test_main_auth_failure_exits_nonzero(tmp_path, monkeypatch):
    def fail(config):
        raise AuthError("no OAuth callback received within 300s")

    monkeypatch.setattr(entry, "build_kit", fail)
    path = write_config(tmp_path / "config.json", samples_source="freesound", output_dir=str(tmp_path / "out"))
    assert entry.main(path) == 1


def test_build_kit_dispatches_on_source(monkeypatch):
    calls = []

    class FakeSampleFocus:
        def __init__(self, config):
            calls.append(("samplefocus", config.samples_source))

        def build(self):
            return []

    monkeypatch.setattr(entry, "SampleFocusKitBuilder", FakeSampleFocus)
    assert entry.build_kit(entry.KitConfig()) == []
    assert calls == [("samplefocus", "samplefocus")]


def test_build_kit_freesound_closes_client(monkeypatch):
    closed = []

    class FakeClient:
        def __init__(self, token):
            self.token = token

        def close(self):
            closed.append(self.token)

    class FakeFreesound:
        def __init__(self, config, client):
            self.client = client

        def build(self):
            return [CategoryResult(category="kick", requested=1)]

    monkeypatch.setattr(entry, "authorize", lambda cid, secret: f"tok-{cid}")
    monkeypatch.setattr(entry, "FreesoundClient", FakeClient)
    monkeypatch.setattr(entry, "FreesoundKitBuilder", FakeFreesound)

    results = entry.build_kit(entry.KitConfig(samples_source="freesound", client_id="c1", client_secret="s"))
    assert [r.category for r in results] == ["kick"]
    assert closed == ["tok-c1"]


@pytest.mark.parametrize("output_dir", [".", "./", "..", "/"])
def test_prepare_output_dir_refuses_working_tree(tmp_path, output_dir):
    (tmp_path / "config.json").write_text("{}")
    with pytest.raises(ConfigError, match="refusing to wipe"):
        entry.prepare_output_dir(output_dir)
    assert (tmp_path / "config.json").exists()


def test_main_refuses_cwd_as_output(tmp_path, monkeypatch):
    monkeypatch.setattr(entry, "build_kit", lambda config: pytest.fail("should not build"))
    path = write_config(tmp_path / "config.json", output_dir=".")
    assert entry.main(path) == 1
    assert (tmp_path / "config.json").exists()
