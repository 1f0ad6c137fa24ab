from dataclasses import asdict, dataclass, field
import json
import logging
import os
from pathlib import Path
import re
import tempfile

import yaml

from .plan import DEFAULT_LINE_BUDGET
from .session import SessionState
from .source_tree import DEFAULT_EXTENSIONS
from .utils import BASE_DELAY, MAX_DELAY, MAX_RETRIES

logger = logging.getLogger(__name__)

BACKENDS = ("clipboard", "anthropic", "openrouter")


@dataclass
class ProjectConfig:
    """User-editable project preferences from config.yaml."""

    version: int = 1
    project_name: str = ""
    backend: str = "clipboard"
    model: str = ""
    max_tokens: int = 8192
    max_retries: int = MAX_RETRIES
    retry_base_delay: float = BASE_DELAY
    retry_max_delay: float = MAX_DELAY
    line_budget: int = DEFAULT_LINE_BUDGET
    skeleton_prefixes: list[str] = field(default_factory=lambda: ["add", "imp", "file-add"])
    again_default: str = "continue"
    source_extensions: list[str] = field(default_factory=lambda: list(DEFAULT_EXTENSIONS))
    ignore_paths: list[str] = field(default_factory=list)


class ConfigManager:
    def __init__(self, project_path: str):
        self.project_path = Path(project_path).resolve()
        self.prefixkit_dir = self.project_path / ".prefixkit"

    @property
    def changelog_dir(self) -> Path:
        return self.prefixkit_dir / "changelog"

    @property
    def tasks_dir(self) -> Path:
        return self.prefixkit_dir / "tasks"

    @property
    def session_path(self) -> Path:
        return self.prefixkit_dir / "session.json"

    def is_initialized(self) -> bool:
        """Check if .prefixkit/ exists and has config.yaml."""
        return (self.prefixkit_dir / "config.yaml").is_file()

    def initialize(self, config: ProjectConfig | None = None) -> None:
        """Create .prefixkit/ with config, change-log and task directories."""
        if self.is_initialized():
            raise FileExistsError(
                f".prefixkit/ already initialized at {self.prefixkit_dir}"
            )

        self.prefixkit_dir.mkdir(parents=True, exist_ok=True)
        self.changelog_dir.mkdir(exist_ok=True)
        self.tasks_dir.mkdir(exist_ok=True)

        if config is None:
            config = ProjectConfig()
        if not config.project_name:
            config.project_name = self.detect_project_name()
        self.save_config(config)

        (self.prefixkit_dir / ".gitignore").write_text(
            "session.json\n",
            encoding="utf-8",
        )

    def load_config(self) -> ProjectConfig:
        """Read config.yaml into ProjectConfig. Missing keys use defaults."""
        config_path = self.prefixkit_dir / "config.yaml"
        if not config_path.is_file():
            return ProjectConfig()

        data = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
        defaults = ProjectConfig()
        kwargs = {}
        for field_name in ProjectConfig.__dataclass_fields__:
            kwargs[field_name] = data.get(field_name, getattr(defaults, field_name))
        config = ProjectConfig(**kwargs)

        if config.backend not in BACKENDS:
            raise ValueError(
                f"Unknown backend '{config.backend}' in config.yaml. Available: {', '.join(BACKENDS)}"
            )
        if config.again_default not in ("continue", "retry"):
            raise ValueError("again_default must be 'continue' or 'retry'")
        if config.max_retries < 0:
            raise ValueError("max_retries must be 0 or more")
        if config.retry_base_delay <= 0 or config.retry_max_delay < config.retry_base_delay:
            raise ValueError("retry delays must satisfy 0 < retry_base_delay <= retry_max_delay")
        return config

    def save_config(self, config: ProjectConfig) -> None:
        """Write ProjectConfig to config.yaml."""
        config_path = self.prefixkit_dir / "config.yaml"
        config_path.parent.mkdir(parents=True, exist_ok=True)
        config_path.write_text(
            yaml.dump(
                asdict(config),
                default_flow_style=False,
                sort_keys=False,
            ),
            encoding="utf-8",
        )

    def load_session(self) -> SessionState:
        """Read session.json. A missing or corrupt file starts an idle session."""
        if not self.session_path.is_file():
            return SessionState()

        try:
            data = json.loads(self.session_path.read_text(encoding="utf-8"))
            return SessionState.from_dict(data)
        except (json.JSONDecodeError, KeyError, ValueError) as exc:
            logger.warning("Ignoring unreadable session file %s: %s", self.session_path, exc)
            return SessionState()

    def save_session(self, session: SessionState) -> None:
        """Write session.json atomically so readers never see a half-written state."""
        self.prefixkit_dir.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            dir=self.prefixkit_dir, prefix=".session-", suffix=".json"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(json.dumps(session.to_dict(), indent=2) + "\n")
            os.replace(tmp_path, self.session_path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

    def clear_session(self) -> None:
        if self.session_path.is_file():
            self.session_path.unlink()

    def detect_project_name(self) -> str:
        """Auto-detect project name from common project files."""
        package_swift = self.project_path / "Package.swift"
        if package_swift.is_file():
            match = re.search(
                r'name\s*:\s*"([^"]+)"',
                package_swift.read_text(encoding="utf-8"),
            )
            if match:
                return match.group(1)

        xcodeprojects = sorted(self.project_path.glob("*.xcodeproj"))
        if xcodeprojects:
            return xcodeprojects[0].stem

        pyproject = self.project_path / "pyproject.toml"
        if pyproject.is_file():
            match = re.search(
                r'^name\s*=\s*["\']([^"\']+)["\']',
                pyproject.read_text(encoding="utf-8"),
                re.MULTILINE,
            )
            if match:
                return match.group(1)

        return self.project_path.name
