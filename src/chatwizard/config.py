"""Wizard configuration.

Configuration is read from a YAML or JSON file (or a dictionary), then:

1. ``${VAR}``, ``${VAR:default}`` and ``${VAR:-default}`` references in string
   values are replaced with environment variables;
2. environment variables named ``CHATWIZARD_<FIELD>`` override top-level
   fields, and ``CHATWIZARD_<SECTION>__<KEY>`` override keys of the
   ``storage`` and ``logging`` sections.

Example:
    ```yaml
    namespace: advertising
    command_name: annonce
    edition_channel: "${AD_EDITION_CHANNEL}"
    publish_channel: "${AD_FORUM_CHANNEL}"
    max_submissions_per_user: 2
    storage:
      backend: file
      directory: saved/config
    logging:
      level: INFO
      json_format: false
    ```
"""

from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Union

import yaml  # type: ignore[import-untyped]

from chatwizard.exceptions import ConfigurationError
from chatwizard.identifiers import ROUTING_SEPARATOR

logger = logging.getLogger(__name__)

ENV_PREFIX = "CHATWIZARD_"
ENV_SEPARATOR = "__"

_SECTIONS = ("storage", "logging")


class VariableSubstitution:
    """Replaces environment variable references in configuration values.

    Supports patterns:
    - ${VAR} - Replace with environment variable VAR, error if not found
    - ${VAR:default} - Replace with VAR or use default if not found
    - ${VAR:-default} - Same as above (bash-style)
    """

    VAR_PATTERN = re.compile(r'\$\{([^}:]+)(?::(-)?([^}]*))?\}')

    def __init__(self, environ: Dict[str, str] | None = None):
        self.environ = os.environ if environ is None else environ

    def substitute(self, value: Any) -> Any:
        if isinstance(value, str):
            return self._substitute_string(value)
        if isinstance(value, dict):
            return {key: self.substitute(item) for key, item in value.items()}
        if isinstance(value, list):
            return [self.substitute(item) for item in value]
        return value

    def _lookup(self, match: re.Match) -> str:
        var_name = match.group(1)
        has_default = match.group(2) is not None or match.group(3) is not None
        if var_name in self.environ:
            return self.environ[var_name]
        if has_default:
            return match.group(3) or ""
        raise ConfigurationError(
            f"Environment variable '{var_name}' not found",
            context={"variable": var_name},
        )

    def _substitute_string(self, text: str) -> Any:
        # A value made of a single reference keeps the converted type
        match = self.VAR_PATTERN.fullmatch(text)
        if match:
            return _convert_type(self._lookup(match))
        return self.VAR_PATTERN.sub(self._lookup, text)


def _convert_type(value: str) -> Union[str, int, float, bool]:
    lowered = value.lower()
    if lowered in ("true", "yes"):
        return True
    if lowered in ("false", "no"):
        return False
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError:
        return value


@dataclass
class WizardConfig:
    """Settings of one wizard module.

    Attributes:
        namespace: Module name, used as routing namespace and storage key
        description: Human readable module description
        command_name: Slash command starting the wizard
        edition_channel: Channel under which private editing threads are created
        publish_channel: Channel where finalized documents are posted
        max_submissions_per_user: Number of stored submissions a user may keep
        storage: Document store configuration (see ``create_document_store``)
        logging: Event logging options (level, json_format, include_content)
    """

    namespace: str = "advertising"
    description: str = "Créer une annonce d'offre ou de recherche d'emploi"
    command_name: str = "annonce"
    edition_channel: str = ""
    publish_channel: str = ""
    max_submissions_per_user: int = 2
    storage: Dict[str, Any] = field(
        default_factory=lambda: {"backend": "file", "directory": "saved/config"}
    )
    logging: Dict[str, Any] = field(
        default_factory=lambda: {"level": "INFO", "json_format": False, "include_content": False}
    )

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        """Check field values.

        Raises:
            ConfigurationError: If a value is invalid
        """
        if not self.namespace or ROUTING_SEPARATOR in self.namespace:
            raise ConfigurationError(
                "Invalid namespace",
                context={"namespace": self.namespace, "separator": ROUTING_SEPARATOR},
            )
        if not self.command_name:
            raise ConfigurationError("command_name must not be empty")
        if not isinstance(self.max_submissions_per_user, int) or self.max_submissions_per_user < 1:
            raise ConfigurationError(
                "max_submissions_per_user must be a positive integer",
                context={"max_submissions_per_user": self.max_submissions_per_user},
            )
        for section in _SECTIONS:
            if not isinstance(getattr(self, section), dict):
                raise ConfigurationError(
                    f"'{section}' must be a mapping",
                    context={"section": section},
                )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> WizardConfig:
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationError(
                f"Unknown configuration keys: {', '.join(unknown)}",
                context={"unknown": unknown},
            )
        values = dict(data)
        for section in _SECTIONS:
            if section in values and isinstance(values[section], dict):
                merged = getattr(cls(), section)
                merged.update(values[section])
                values[section] = merged
        for key in ("edition_channel", "publish_channel"):
            if values.get(key) is not None:
                values[key] = str(values[key])
        return cls(**values)


def _read_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise ConfigurationError(
            f"Configuration file not found: {path}", context={"path": str(path)}
        )
    suffix = path.suffix.lower()
    with open(path, encoding="utf-8") as f:
        if suffix in (".yaml", ".yml"):
            data = yaml.safe_load(f)
        elif suffix == ".json":
            data = json.load(f)
        else:
            raise ConfigurationError(
                f"Unsupported file format: {suffix}", context={"path": str(path)}
            )
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(
            "Configuration root must be a mapping", context={"path": str(path)}
        )
    return data


def _environment_overrides(environ: Dict[str, str]) -> Dict[str, Any]:
    known = {f.name for f in fields(WizardConfig)}
    overrides: Dict[str, Any] = {}
    for key, value in environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        parts = key[len(ENV_PREFIX):].lower().split(ENV_SEPARATOR)
        if parts[0] not in known:
            logger.warning("Ignoring unknown configuration override %s", key)
        elif len(parts) == 1:
            overrides[parts[0]] = _convert_type(value)
        elif len(parts) == 2 and parts[0] in _SECTIONS:
            overrides.setdefault(parts[0], {})[parts[1]] = _convert_type(value)
        else:
            logger.warning("Ignoring malformed configuration override %s", key)
    return overrides


def load_config(
    source: Union[str, Path, Dict[str, Any], None] = None,
    environ: Dict[str, str] | None = None,
    use_env: bool = True,
) -> WizardConfig:
    """Build a ``WizardConfig`` from a file, a dictionary or defaults.

    Args:
        source: Path to a YAML/JSON file, a dictionary, or None for defaults
        environ: Environment used for substitution and overrides
            (defaults to ``os.environ``)
        use_env: Whether ``CHATWIZARD_*`` overrides are applied

    Returns:
        The validated configuration

    Raises:
        ConfigurationError: If the source cannot be read or holds invalid values
    """
    environ = dict(os.environ) if environ is None else environ

    if source is None:
        data: Dict[str, Any] = {}
    elif isinstance(source, dict):
        data = dict(source)
    elif isinstance(source, (str, Path)):
        data = _read_file(Path(source))
    else:
        raise ConfigurationError(f"Invalid source type: {type(source)}")

    data = VariableSubstitution(environ).substitute(data)

    if use_env:
        for key, value in _environment_overrides(environ).items():
            if key in _SECTIONS and isinstance(value, dict):
                section = dict(data.get(key) or {})
                section.update(value)
                data[key] = section
            else:
                data[key] = value

    config = WizardConfig.from_dict(data)
    logger.debug("Loaded configuration for module %s", config.namespace)
    return config
