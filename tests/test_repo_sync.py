import shutil
import subprocess

import pytest

from tuva_sql.exceptions import SchemaSourceError
from tuva_sql.offline.repo_sync import SchemaRepository

pytestmark = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")

GIT_IDENTITY = ["-c", "user.name=Tuva Tests", "-c", "user.email=tests@example.com"]


def _git(cwd, *args):
    subprocess.run(["git", *GIT_IDENTITY, *args], cwd=cwd, check=True, capture_output=True)


def _commit_file(repo, relative, content, message):
    path = repo / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    _git(repo, "add", relative)
    _git(repo, "commit", "-m", message)


@pytest.fixture
def upstream(tmp_path):
    repo = tmp_path / "upstream"
    repo.mkdir()
    _git(repo, "init")
    _commit_file(repo, "models/core.yml", "version: 2\nmodels: []\n", "Add core models")
    return repo


def test_clones_when_no_checkout_exists(tmp_path, upstream):
    checkout = tmp_path / "work" / "tuva-repo"
    repository = SchemaRepository(url=str(upstream), path=checkout)

    repository.clone_or_pull()

    assert (checkout / ".git").is_dir()
    assert (repository.models_dir / "core.yml").is_file()


def test_pulls_into_existing_checkout(tmp_path, upstream):
    checkout = tmp_path / "tuva-repo"
    repository = SchemaRepository(url=str(upstream), path=checkout)
    repository.clone_or_pull()
    _commit_file(upstream, "models/claims.yml", "claims:\n  columns: [claim_id]\n", "Add claims")

    repository.clone_or_pull()

    assert (repository.models_dir / "claims.yml").is_file()


def test_failed_clone_raises_schema_source_error(tmp_path):
    repository = SchemaRepository(url=str(tmp_path / "does-not-exist"), path=tmp_path / "tuva-repo")

    with pytest.raises(SchemaSourceError, match="git clone failed") as exc_info:
        repository.clone_or_pull()

    assert exc_info.value.stage == "schema_sync"


def test_input_directories_follow_configured_subdirectories(tmp_path):
    repository = SchemaRepository(url="unused", path=tmp_path, models_subdir="dbt/models", docs_subdir="docs")

    assert repository.models_dir == tmp_path / "dbt" / "models"
    assert repository.docs_dir == tmp_path / "docs"
