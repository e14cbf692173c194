"""
Config file discovery and loading for course_sync.

Config files are plain YAML with two extensions:

* ``!include other.yml`` inlines another YAML document, resolved relative
  to the including file.
* ``${VAR}`` / ``${VAR:-default}`` in any string value is replaced from
  the environment once all files are merged.

Several files may apply at once (env var, project, user).  They are merged
key-by-key at the top level, the most specific file winning.

Usage:
    from course_sync.config_loader import load_hierarchical_config

    raw = load_hierarchical_config()
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigError

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "COURSE_SYNC_CONFIG"
PROJECT_CONFIG_DIR = ".course_sync"
USER_CONFIG_DIR = Path(".config") / "course_sync"

# ---------------------------------------------------------------------------
# Environment substitution
# ---------------------------------------------------------------------------

# ${NAME} or ${NAME:-fallback}
_PLACEHOLDER = re.compile(r"\$\{(?P<name>[^}:]+?)(?::-(?P<fallback>.*?))?\}")


def interpolate_env_vars(value: str) -> str:
    """Substitute environment placeholders in *value*.

    An unset or empty variable yields its fallback, or ``""`` without one.
    Text such as ``${UNCLOSED`` is not a placeholder and is kept as is.
    """

    def _lookup(match: re.Match) -> str:
        current = os.environ.get(match.group("name"))
        if current:
            return current
        return match.group("fallback") or ""

    return _PLACEHOLDER.sub(_lookup, value)


def _interpolate_recursive(obj: Any) -> Any:
    """Apply ``interpolate_env_vars`` to every string in a YAML tree."""
    if isinstance(obj, dict):
        return {key: _interpolate_recursive(val) for key, val in obj.items()}
    if isinstance(obj, list):
        return [_interpolate_recursive(val) for val in obj]
    if isinstance(obj, str):
        return interpolate_env_vars(obj)
    return obj


# ---------------------------------------------------------------------------
# !include
# ---------------------------------------------------------------------------


class ConfigLoader(yaml.SafeLoader):
    """SafeLoader that understands ``!include``.

    The tag is registered on this subclass only, so ``yaml.safe_load``
    elsewhere in the process is unaffected.  Each loader carries the chain
    of files being loaded, which is how include cycles are caught.
    """

    def __init__(self, stream, chain: tuple[Path, ...] = ()) -> None:
        super().__init__(stream)
        self.chain = chain

    def construct_include(self, node: yaml.ScalarNode) -> Any:
        requested = Path(self.construct_scalar(node))
        including = self.chain[-1] if self.chain else Path(self.name).resolve()
        if not requested.is_absolute():
            requested = including.parent / requested
        target = requested.resolve()

        if target in self.chain:
            cycle = " -> ".join(str(p) for p in (*self.chain, target))
            raise ConfigError(f"Circular include detected: {cycle}")
        if not target.is_file():
            raise ConfigError(
                f"Include file not found: {target} (referenced from {including})"
            )
        return _load_yaml_with_includes(target, _chain=self.chain)


ConfigLoader.add_constructor("!include", ConfigLoader.construct_include)


def _load_yaml_with_includes(
    path: Path, *, _chain: tuple[Path, ...] = ()
) -> Any:
    """Parse one YAML file, following ``!include`` tags."""
    resolved = Path(path).resolve()
    with open(resolved, encoding="utf-8") as fh:
        loader = ConfigLoader(fh, chain=(*_chain, resolved))
        try:
            return loader.get_single_data()
        finally:
            loader.dispose()


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


def _candidate_paths() -> list[Path]:
    candidates = []
    explicit = os.environ.get(CONFIG_ENV_VAR)
    if explicit:
        candidates.append(Path(explicit).expanduser().resolve())
    project_dir = Path.cwd() / PROJECT_CONFIG_DIR
    candidates.extend(
        [project_dir / "config.yml", project_dir / "config.yaml"]
    )
    candidates.append(Path.home() / USER_CONFIG_DIR / "config.yml")
    return candidates


def discover_config_files() -> list[Path]:
    """Existing config files, most specific first.

    Checked in order: the ``COURSE_SYNC_CONFIG`` path, then
    ``./.course_sync/config.yml``, then ``./.course_sync/config.yaml``,
    then ``~/.config/course_sync/config.yml``.
    """
    return [path for path in _candidate_paths() if path.exists()]


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


def _load_one(path: Path) -> dict[str, Any]:
    logger.debug("Loading config: %s", path)
    try:
        data = _load_yaml_with_includes(path)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"Cannot read config file {path}: {exc}") from exc

    if data is None:
        return {}
    if isinstance(data, dict):
        return data
    logger.warning(
        "Ignoring config file %s: top level is a %s, not a mapping",
        path,
        type(data).__name__,
    )
    return {}


def load_hierarchical_config(
    explicit_path: Path | None = None,
) -> dict[str, Any]:
    """Read every applicable config file and merge them.

    Merging is shallow: a top-level section from a more specific file
    replaces the same section from a less specific one wholesale.
    Environment placeholders are substituted after merging.

    Args:
        explicit_path: A file named on the command line.  When given,
            discovery is skipped and the file must exist.

    Returns:
        The merged mapping; empty when there is nothing to read.

    Raises:
        ConfigError: If a file is missing, unreadable or not valid YAML.
    """
    if explicit_path is None:
        paths = discover_config_files()
    elif explicit_path.exists():
        paths = [explicit_path]
    else:
        raise ConfigError(f"Config file not found: {explicit_path}")

    if not paths:
        logger.debug("No config files found")
        return {}

    merged: dict[str, Any] = {}
    for path in reversed(paths):
        merged.update(_load_one(path))
    return _interpolate_recursive(merged)
