import logging
import subprocess
from pathlib import Path
from typing import List, Optional, Union

from ..config import settings
from ..exceptions import SchemaSourceError


class SchemaRepository:
    """Local checkout of the schema source repository."""

    def __init__(
        self,
        url: Optional[str] = None,
        path: Optional[Union[str, Path]] = None,
        timeout: int = 600,
        models_subdir: Optional[str] = None,
        docs_subdir: Optional[str] = None
    ):
        """
        Initialize the repository handle.

        Args:
            url: Remote to clone from
            path: Local checkout directory
            timeout: Seconds allowed for each git command
            models_subdir: Directory of dbt model YAML files inside the checkout
            docs_subdir: Directory of documentation YAML files inside the checkout
        """
        self.logger = logging.getLogger(__name__)
        self.url = url or settings.schema_repo_url
        self.path = Path(path or settings.schema_repo_dir)
        self.timeout = timeout
        self.models_subdir = models_subdir or settings.schema_models_subdir
        self.docs_subdir = docs_subdir or settings.schema_docs_subdir

    @property
    def models_dir(self) -> Path:
        return self.path / self.models_subdir

    @property
    def docs_dir(self) -> Path:
        return self.path / self.docs_subdir

    def _run_git(self, args: List[str], cwd: Optional[Path] = None) -> str:
        command = ["git", *args]
        self.logger.debug(f"Executing: {' '.join(command)}")
        try:
            result = subprocess.run(
                command,
                cwd=cwd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                encoding="utf-8",
                errors="replace"
            )
        except subprocess.TimeoutExpired as e:
            raise SchemaSourceError(f"git {args[0]} timed out after {self.timeout} seconds") from e
        except OSError as e:
            raise SchemaSourceError(f"Could not run git: {e}") from e

        if result.returncode != 0:
            raise SchemaSourceError(f"git {args[0]} failed: {result.stderr.strip()}")
        return result.stdout.strip()

    def clone_or_pull(self) -> None:
        """Clone the repository, or pull the latest changes if already cloned."""
        if (self.path / ".git").exists():
            self.logger.info(f"Repository already exists at {self.path}, pulling latest changes")
            self._run_git(["pull", "--ff-only"], cwd=self.path)
        else:
            self.logger.info(f"Cloning {self.url} into {self.path}")
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._run_git(["clone", "--depth", "1", self.url, str(self.path)])
            self.logger.info("Repository cloned successfully")
