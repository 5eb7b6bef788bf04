"""Application configuration.

AppConfig is a frozen dataclass — immutable after creation, IDE-autocompletable,
no string-key dict lookups.
"""

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Application configuration. Immutable after creation.

    All fields have sensible defaults. Override what you need::

        config = AppConfig(debug=True, project_dir="myapp", regeneration_delay=0.2)
    """

    # Server
    host: str = "127.0.0.1"
    port: int = 8000
    debug: bool = False

    # Reload (development mode — requires debug=True)
    reload_include: tuple[str, ...] = ()  # Extra extensions to watch (e.g. ".md", ".json")
    reload_dirs: tuple[str, ...] = ()  # Extra directories to watch alongside cwd

    # Realms, relative to project_dir unless absolute
    project_dir: str | Path = "."
    frontend_dirs: tuple[str | Path, ...] = ("frontend",)
    backend_dirs: tuple[str | Path, ...] = ("backend",)
    common_dirs: tuple[str | Path, ...] = ("common",)

    # Templates
    template_dir: str | Path | None = "templates"
    autoescape: bool = True
    trim_blocks: bool = True
    lstrip_blocks: bool = True

    # Rendering
    default_language: str = "en"
    frontend_module: str = "/@perch/frontend/entrypoint.js"

    # Live channel (hot reload + value updates)
    live: bool = True
    live_path: str = "/@perch/sse"
    ping_interval: float = 5.0
    reload_coalesce: float = 0.2
    sse_heartbeat_interval: float = 15.0
    sse_retry_ms: int | None = None

    # Cross-realm stubs
    src_prefix: str = "/@perch/src/"
    external_prefix: str = "/@perch/external/"
    import_map_path: str = "/@perch/importmap.json"
    regeneration_delay: float = 0.5

    def resolve_dir(self, directory: str | Path) -> Path:
        """Resolve a configured directory against ``project_dir``."""
        path = Path(directory)
        if not path.is_absolute():
            path = Path(self.project_dir) / path
        return path.resolve()
