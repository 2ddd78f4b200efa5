from pathlib import Path

import pytest

from checkupgrades.config import Config, SyncSource
from checkupgrades.models import Repo

CORE_URL = "https://mirror.example.org/core/os/x86_64/core.db"
EXTRA_URL = "https://mirror.example.org/extra/os/x86_64/extra.db"


@pytest.fixture
def config(tmp_path: Path) -> Config:
    return Config(
        db_path=tmp_path / "pacman",
        cache_dir=tmp_path / "cache",
        sources=(
            SyncSource(repo=Repo(name="core"), url=CORE_URL),
            SyncSource(repo=Repo(name="extra"), url=EXTRA_URL),
        ),
        timeout=5.0,
    )


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for var in ("CHECKUPGRADES_DB_PATH", "CHECKUPDATES_DB", "CHECKUPGRADES_SOURCES", "CHECKUPGRADES_TIMEOUT"):
        monkeypatch.delenv(var, raising=False)
