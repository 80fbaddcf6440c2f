"""Job definition template rendering: Jinja2 + env / must_env / tfstate functions"""

import json
import logging
import os
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, StrictUndefined, TemplateError

from batcha.config import Plugin, Settings, template_path
from batcha.core.tfstate import TFState
from batcha.errors import RenderError


logger = logging.getLogger(__name__)


def _env(name: str, default: str = "") -> str:
    return os.environ.get(name, default)


def _must_env(name: str) -> str:
    if name not in os.environ:
        raise RenderError(f"environment variable {name} is not defined")
    return os.environ[name]


def plugin_functions(plugins: list[Plugin], base_dir: Path) -> dict:
    """Build template globals contributed by configured plugins."""
    funcs = {}
    for p in plugins:
        if p.name != "tfstate":
            logger.debug("ignoring unknown plugin %r", p.name)
            continue
        url = p.config.get("url", "")
        state = TFState.load(url, base_dir)
        logger.debug("loaded tfstate plugin from %s", url)
        funcs["tfstate"] = state.lookup
        funcs["tfstatef"] = lambda fmt, *args, _state=state: _state.lookup(fmt % args)
    return funcs


def make_environment(template_dir: Path, extra_globals: dict = None) -> Environment:
    env = Environment(
        loader=FileSystemLoader(str(template_dir)),
        undefined=StrictUndefined,
        keep_trailing_newline=True,
        autoescape=False,
    )
    env.globals.update(env=_env, must_env=_must_env)
    if extra_globals:
        env.globals.update(extra_globals)
    return env


def render_text(path: Path, extra_globals: dict = None) -> str:
    """Render the template file at path and return the raw text."""
    env = make_environment(path.parent, extra_globals)
    try:
        return env.get_template(path.name).render()
    except TemplateError as e:
        raise RenderError(f"failed to render job definition template: {e}") from e


def render_definition(settings: Settings) -> dict:
    """Render the configured template and parse it as a JSON object."""
    path = template_path(settings)
    if not path.is_file():
        raise RenderError(f"failed to render job definition template: {path} not found")
    text = render_text(path, plugin_functions(settings.plugins, settings.config_dir))
    try:
        rendered = json.loads(text)
    except json.JSONDecodeError as e:
        raise RenderError(f"failed to render job definition template: invalid JSON in {path}: {e}") from e
    if not isinstance(rendered, dict):
        raise RenderError(f"failed to render job definition template: {path} must contain a JSON object")
    return rendered
