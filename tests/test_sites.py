import io
import os
import stat
import threading
import time
import zipfile
from pathlib import Path

import pytest

from gorgon.config import CONFIG_FILENAME, SiteConfig
from gorgon.errors import (
    BundleError,
    EngineError,
    FetchError,
    InvalidIdentifierError,
    SerializationError,
    SiteExistsError,
    StorageError,
    ThemeUnavailableError,
)
from gorgon.sites import Site, SiteStore
from gorgon.themes import LookupStatus

ANANKE_URL = "https://github.com/budparr/gohugo-theme-ananke.git"


def make_config(site_id="acme", **overrides) -> SiteConfig:
    values = dict(
        id=site_id,
        theme="ananke",
        theme_url=ANANKE_URL,
        base_url="http://localhost",
        language_code="en-us",
        title="Test Site",
    )
    values.update(overrides)
    return SiteConfig(**values)


def test_init_creates_private_root(tmp_path, theme_store):
    root = tmp_path / "fresh-sites"
    SiteStore(root, theme_store)
    assert root.is_dir()
    assert stat.S_IMODE(root.stat().st_mode) == 0o700


def test_acme_scenario(site_store, runner):
    site = site_store.create(make_config())
    root = site_store.root / "acme"

    assert len(runner.calls_to("git", "clone")) == 1
    assert site.path == root
    for name in ("content", "layout", "public"):
        assert (root / name).is_dir()
    assert (root / CONFIG_FILENAME).is_file()
    assert not (root / "hugo.toml").exists()
    assert stat.S_IMODE((root / CONFIG_FILENAME).stat().st_mode) == 0o600

    found = site_store.find("acme")
    found.build()
    args, cwd = runner.calls[-1]
    assert args == ("hugo",)
    assert cwd == root


def test_create_scaffolds_with_staged_config(site_store, runner):
    site_store.create(make_config())

    (args, cwd), = runner.calls_to("hugo", "new", "site")
    assert args[3] == "acme"
    assert args[4] == "--config"
    staged_config = Path(args[5])
    assert staged_config.name == "acme.toml"
    assert staged_config.parent == cwd
    assert cwd.parent == site_store.root
    # staging is removed once the site is promoted
    assert not cwd.exists()
    assert os.listdir(site_store.root) == ["acme"]


def test_create_then_find_round_trips_metadata(site_store):
    config = make_config(title="Hello, Gorgon", base_url="https://acme.example/")
    site_store.create(config)

    found = site_store.find("acme")
    assert found is not None
    assert found.id == "acme"
    assert found.config.base_url == "https://acme.example/"
    assert found.config.language_code == "en-us"
    assert found.config.title == "Hello, Gorgon"
    assert found.config.theme == "ananke"
    root = site_store.root / "acme"
    assert found.config.site_path == str(root)
    assert found.config.content_dir == str(root / "content")
    assert found.config.layout_dir == str(root / "layout")
    assert found.config.publish_dir == str(root / "public")
    assert found.config.themes_dir == str(site_store.theme_store.root)


def test_create_ignores_caller_layout_fields(site_store):
    config = make_config(
        content_dir="/etc",
        layout_dir="/etc",
        publish_dir="/etc",
        themes_dir="/etc",
        site_path="/etc",
    )
    site = site_store.create(config)
    assert site.config.publish_dir == str(site_store.root / "acme" / "public")
    assert site.config.themes_dir == str(site_store.theme_store.root)
    # the caller's object is left alone
    assert config.publish_dir == "/etc"


def test_create_without_theme_or_url_leaves_nothing(site_store, runner):
    with pytest.raises(ThemeUnavailableError):
        site_store.create(make_config(theme_url=""))
    assert not (site_store.root / "acme").exists()
    assert os.listdir(site_store.root) == []
    assert runner.calls == []


def test_create_fetch_failure(site_store, runner):
    runner.fail("git", stderr="fatal: could not read from remote")
    with pytest.raises(FetchError):
        site_store.create(make_config())
    assert os.listdir(site_store.root) == []
    assert runner.calls_to("hugo") == []


def test_second_site_reuses_fetched_theme(site_store, runner):
    site_store.create(make_config("acme"))
    site_store.create(make_config("globex"))
    assert len(runner.calls_to("git", "clone")) == 1
    assert site_store.list_ids() == ["acme", "globex"]


def test_create_with_local_theme_never_fetches(site_store, runner):
    (site_store.theme_store.root / "ananke").mkdir()
    site_store.create(make_config(theme_url=""))
    assert runner.calls_to("git") == []


def test_scaffold_failure_is_rolled_back(site_store, runner):
    (site_store.theme_store.root / "ananke").mkdir()
    runner.fail("hugo", stderr="Error: unknown flag")

    with pytest.raises(EngineError) as excinfo:
        site_store.create(make_config())

    assert "unknown flag" in excinfo.value.stderr
    assert os.listdir(site_store.root) == []
    assert site_store.find("acme") is None


def test_config_write_failure(site_store, monkeypatch):
    (site_store.theme_store.root / "ananke").mkdir()

    def broken_write(path, payload):
        raise OSError("disk full")

    monkeypatch.setattr("gorgon.sites.write_private_file", broken_write)
    with pytest.raises(SerializationError) as excinfo:
        site_store.create(make_config())
    assert "disk full" in str(excinfo.value)
    assert os.listdir(site_store.root) == []


def test_relocation_failure(site_store, monkeypatch):
    (site_store.theme_store.root / "ananke").mkdir()

    def broken_replace(src, dst):
        raise OSError("cross-device link")

    monkeypatch.setattr("gorgon.sites.os.replace", broken_replace)
    with pytest.raises(SerializationError):
        site_store.create(make_config())
    assert os.listdir(site_store.root) == []


def test_layout_provisioning_failure(site_store, runner, monkeypatch):
    (site_store.theme_store.root / "ananke").mkdir()
    real_run = runner.run

    def run_then_block_layout(args, cwd, **kwargs):
        result = real_run(args, cwd, **kwargs)
        if tuple(str(a) for a in args[1:3]) == ("new", "site"):
            (Path(cwd) / str(args[3]) / "layout").write_text("in the way", encoding="utf-8")
        return result

    monkeypatch.setattr(runner, "run", run_then_block_layout)
    with pytest.raises(StorageError) as excinfo:
        site_store.create(make_config())
    assert "provision site layout" in str(excinfo.value)
    assert os.listdir(site_store.root) == []


def test_promotion_failure(site_store, monkeypatch):
    (site_store.theme_store.root / "ananke").mkdir()

    def broken_rename(src, dst):
        raise OSError("read-only file system")

    monkeypatch.setattr("gorgon.sites.os.rename", broken_rename)
    with pytest.raises(StorageError) as excinfo:
        site_store.create(make_config())
    assert "read-only file system" in str(excinfo.value)
    assert os.listdir(site_store.root) == []


def test_create_duplicate_id(site_store, runner):
    site_store.create(make_config())
    with pytest.raises(SiteExistsError):
        site_store.create(make_config(title="Other"))
    assert site_store.find("acme").config.title == "Test Site"
    assert len(runner.calls_to("hugo", "new", "site")) == 1


@pytest.mark.parametrize("site_id", ["", "..", "../escape", "a/b", ".hidden", "x" * 200])
def test_create_rejects_unsafe_ids(site_store, runner, site_id):
    with pytest.raises(InvalidIdentifierError):
        site_store.create(make_config(site_id))
    assert runner.calls == []


def test_create_rejects_unsafe_theme(site_store, runner):
    with pytest.raises(InvalidIdentifierError):
        site_store.create(make_config(theme="../../etc"))
    assert runner.calls == []


def test_find_missing_returns_none(site_store):
    assert site_store.find("nope") is None
    assert site_store.lookup("nope").status is LookupStatus.NOT_FOUND
    assert site_store.find("../etc") is None


def test_lookup_corrupt_config(site_store):
    root = site_store.root / "broken"
    root.mkdir()
    (root / CONFIG_FILENAME).write_text("title = [unterminated", encoding="utf-8")

    assert site_store.find("broken") is None
    result = site_store.lookup("broken")
    assert result.status is LookupStatus.CORRUPT
    assert result.detail


def test_lookup_wrong_field_type(site_store):
    root = site_store.root / "typed"
    root.mkdir()
    (root / CONFIG_FILENAME).write_text("title = 42\n", encoding="utf-8")
    assert site_store.lookup("typed").status is LookupStatus.CORRUPT


def test_lookup_missing_config(site_store):
    (site_store.root / "empty").mkdir()
    result = site_store.lookup("empty")
    assert result.status is LookupStatus.CORRUPT
    assert CONFIG_FILENAME in result.detail


def test_find_recomputes_stale_layout(site_store):
    site_store.create(make_config())
    config_path = site_store.root / "acme" / CONFIG_FILENAME
    text = config_path.read_text(encoding="utf-8")
    text = text.replace(str(site_store.root), "/somewhere/else")
    config_path.write_text(text, encoding="utf-8")

    found = site_store.find("acme")
    root = site_store.root / "acme"
    assert found.config.content_dir == str(root / "content")
    assert found.config.layout_dir == str(root / "layout")
    assert found.config.publish_dir == str(root / "public")
    assert found.config.themes_dir == str(site_store.theme_store.root)


def test_list_ids_skips_staging_and_files(site_store):
    (site_store.root / "acme").mkdir()
    (site_store.root / ".acme-123").mkdir()
    (site_store.root / "acme.toml").write_text("", encoding="utf-8")
    assert site_store.list_ids() == ["acme"]


def test_build_failure_carries_stderr(site_store, runner):
    site = site_store.create(make_config())
    runner.fail("hugo", stderr="Error: template not found")
    with pytest.raises(EngineError) as excinfo:
        site.build()
    assert excinfo.value.stderr == "Error: template not found"
    assert excinfo.value.returncode == 1


def test_build_returns_output(site_store):
    site = site_store.create(make_config())
    result = site.build()
    assert result.site_id == "acme"
    assert result.output == "ok"
    assert result.publish_dir == site_store.root / "acme" / "public"


def test_render_swaps_publish_dir(site_store, runner):
    site = site_store.create(make_config())
    stale = site.publish_dir / "stale.html"
    stale.write_text("old", encoding="utf-8")

    result = site.render()

    args, cwd = runner.calls[-1]
    assert args[:2] == ("hugo", "--destination")
    assert cwd == site.path
    assert result.files == ["css/site.css", "index.html"]
    assert not stale.exists()
    assert not (site.path / "public.staging").exists()
    assert not (site.path / "public.old").exists()


def test_render_restores_previous_output_when_swap_fails(site_store, monkeypatch):
    site = site_store.create(make_config())
    (site.publish_dir / "index.html").write_text("previous", encoding="utf-8")
    real_rename = os.rename
    renames = []

    def flaky_rename(src, dst):
        renames.append((src, dst))
        if len(renames) == 2:
            raise OSError("device busy")
        real_rename(src, dst)

    monkeypatch.setattr("gorgon.sites.os.rename", flaky_rename)
    with pytest.raises(StorageError):
        site.render()

    assert (site.publish_dir / "index.html").read_text(encoding="utf-8") == "previous"
    assert not (site.path / "public.old").exists()
    assert not (site.path / "public.staging").exists()


def test_render_failure_keeps_previous_output(site_store, runner):
    site = site_store.create(make_config())
    (site.publish_dir / "index.html").write_text("previous", encoding="utf-8")
    runner.fail("hugo")

    with pytest.raises(EngineError):
        site.render()
    assert (site.publish_dir / "index.html").read_text(encoding="utf-8") == "previous"
    assert not (site.path / "public.staging").exists()


def test_generate_bundle_is_deterministic(site_store):
    site = site_store.create(make_config())
    site.build()

    first = site.generate_bundle()
    second = site.generate_bundle()
    assert first == second

    with zipfile.ZipFile(io.BytesIO(first)) as archive:
        assert archive.namelist() == ["css/site.css", "index.html"]
        assert archive.read("index.html") == b"<h1>home</h1>"
        assert archive.getinfo("index.html").date_time == (1980, 1, 1, 0, 0, 0)


def test_generate_bundle_requires_publish_dir(site_store):
    site = site_store.create(make_config())
    os.rmdir(site.publish_dir)
    with pytest.raises(BundleError):
        site.generate_bundle()


def test_concurrent_creates_of_same_id(site_store, runner):
    (site_store.theme_store.root / "ananke").mkdir()
    outcomes = []

    def attempt():
        try:
            site_store.create(make_config())
            outcomes.append("created")
        except SiteExistsError:
            outcomes.append("exists")

    threads = [threading.Thread(target=attempt) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(outcomes) == ["created", "exists", "exists", "exists"]
    assert site_store.list_ids() == ["acme"]


def test_concurrent_creates_fetch_shared_theme_once(site_store, runner, monkeypatch):
    cloning = threading.Event()
    release = threading.Event()
    real_run = runner.run

    def slow_clone(args, cwd, **kwargs):
        if tuple(str(a) for a in args[:2]) == ("git", "clone"):
            cloning.set()
            release.wait(timeout=5)
        return real_run(args, cwd, **kwargs)

    monkeypatch.setattr(runner, "run", slow_clone)
    errors = []

    def attempt(site_id):
        try:
            site_store.create(make_config(site_id))
        except Exception as exc:
            errors.append(exc)

    site_ids = [f"site{i}" for i in range(4)]
    threads = [threading.Thread(target=attempt, args=(site_id,)) for site_id in site_ids]
    for t in threads:
        t.start()
    assert cloning.wait(timeout=5)
    # let the other creators queue up on the theme lock
    time.sleep(0.1)
    release.set()
    for t in threads:
        t.join()

    assert errors == []
    assert len(runner.calls_to("git", "clone")) == 1
    assert site_store.list_ids() == site_ids


def test_site_repr(site_store):
    site = site_store.create(make_config())
    assert isinstance(site, Site)
    assert "acme" in repr(site)
