"""Kida templates as entrypoint content.

``Template("page.html", title="Home")`` is markup content: the page
renderer renders it with the app's kida environment.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from kida import ChoiceLoader, DictLoader, Environment, FileSystemLoader

from perch.config import AppConfig


@dataclass(frozen=True, slots=True, init=False)
class Template:
    """A kida template name plus its render context."""

    name: str
    context: dict[str, Any]

    def __init__(self, name: str, /, **context: Any) -> None:
        object.__setattr__(self, "name", name)
        object.__setattr__(self, "context", context)


def create_environment(config: AppConfig, builtin: dict[str, str]) -> Environment:
    """Create the app's kida Environment.

    *builtin* templates (page shells, error page) are always available;
    files in ``config.template_dir`` are searched first so an app can
    override them.
    """
    loaders: list[Any] = []
    if config.template_dir is not None:
        template_dir = config.resolve_dir(config.template_dir)
        if Path(template_dir).is_dir():
            loaders.append(FileSystemLoader(str(template_dir)))
    loaders.append(DictLoader(builtin))

    return Environment(
        loader=ChoiceLoader(loaders),
        autoescape=config.autoescape,
        auto_reload=config.debug,
        trim_blocks=config.trim_blocks,
        lstrip_blocks=config.lstrip_blocks,
    )


def render_template(env: Environment, tpl: Template) -> str:
    """Render a Template value to a string."""
    return env.get_template(tpl.name).render(tpl.context)
