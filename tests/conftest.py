from pathlib import Path

import pytest

from gorgon.engines import GitFetcher, HugoEngine
from gorgon.runner import CommandResult
from gorgon.sites import SiteStore
from gorgon.themes import ThemeStore


class FakeRunner:
    """Stands in for git and hugo, recording every invocation.

    Side effects mirror what the real tools leave on disk: a clone creates the
    destination directory, `hugo new site` creates the site skeleton, and a
    build writes a couple of pages into the publish (or --destination) dir.
    """

    def __init__(self):
        self.calls: list[tuple[tuple[str, ...], Path]] = []
        self.failures: dict[str, tuple[int, str]] = {}

    def fail(self, program: str, stderr: str = "boom", returncode: int = 1) -> None:
        self.failures[program] = (returncode, stderr)

    def calls_to(self, *prefix: str) -> list[tuple[tuple[str, ...], Path]]:
        return [c for c in self.calls if c[0][: len(prefix)] == prefix]

    def run(self, args, cwd, *, timeout=None, cancel=None):
        argv = tuple(str(a) for a in args)
        cwd = Path(cwd)
        self.calls.append((argv, cwd))
        program = argv[0]
        if program in self.failures:
            returncode, stderr = self.failures[program]
            return CommandResult(argv, returncode, "", stderr)
        if program == "git" and argv[1] == "clone":
            dest = Path(argv[3])
            (dest / "layouts").mkdir(parents=True)
            (dest / "theme.toml").write_text('name = "fake"\n', encoding="utf-8")
        elif program == "hugo" and argv[1:3] == ("new", "site"):
            site = cwd / argv[3]
            for name in ("content", "layouts", "archetypes"):
                (site / name).mkdir(parents=True)
            (site / "hugo.toml").write_text('title = "scaffold"\n', encoding="utf-8")
        elif program == "hugo":
            if "--destination" in argv:
                out = Path(argv[argv.index("--destination") + 1])
            else:
                out = cwd / "public"
            (out / "css").mkdir(parents=True, exist_ok=True)
            (out / "index.html").write_text("<h1>home</h1>", encoding="utf-8")
            (out / "css" / "site.css").write_text("body{}", encoding="utf-8")
        return CommandResult(argv, 0, "ok", "")


@pytest.fixture
def runner():
    return FakeRunner()


@pytest.fixture
def theme_store(tmp_path, runner):
    return ThemeStore(tmp_path / "themes", fetcher=GitFetcher(runner))


@pytest.fixture
def site_store(tmp_path, runner, theme_store):
    return SiteStore(tmp_path / "sites", theme_store, engine=HugoEngine(runner))
