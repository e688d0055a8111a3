import json
import os
from collections import ChainMap
from pathlib import Path
from typing import Any, Union, get_args, get_origin, get_type_hints

import yaml
from loguru import logger as log

from .consts import str_to_bool


def _env_var_constructor(loader, node):
    """
    Custom YAML tag for loading optional environment variables.

    .. code-block:: yaml

       default_timeout: !ENV ['PLC_TIMEOUT', 5.0]
    """
    default = None

    if node.id == "scalar":
        key = str(loader.construct_scalar(node))
    else:
        value = loader.construct_sequence(node)
        key = value[0]
        if len(value) >= 2:
            default = value[1]

    return os.getenv(key, default)


yaml.SafeLoader.add_constructor("!ENV", _env_var_constructor)


class SettingsManager(dict):
    """
    Stores and manages configuration values from multiple sources.

    Subclass this and declare the options as annotated class attributes,
    much like :mod:`dataclasses`. Attributes without an annotation are
    not treated as options.

    Order of precedence

    - Runtime changes (example: ``config.DEBUG = 2``), including CLI arguments
    - Environment variables (example: ``export CIPENGINE_DEBUG=2``)
    - Configuration file (YAML or JSON)
    - Default values declared on the subclass

    Precedence is managed by a :class:`collections.ChainMap`.

    Args:
        label: The type of information being stored
        env_prefix: Prefix to use for environment variables
        init_env: Load values from environment variables during object initialization
    """

    def __init__(self, label: str, env_prefix: str, init_env: bool = True) -> None:
        super().__init__()

        self["label"] = label
        self["runtime_configs"] = {}
        self["env_configs"] = {}
        self["file_configs"] = {}

        annotations: dict = getattr(self, "__annotations__", {})
        self["default_configs"] = {
            name: dict.__getattribute__(self, name) for name in annotations.keys()
        }

        self.env_prefix: str = env_prefix

        self["CONFIG"] = ChainMap(
            self["runtime_configs"],
            self["env_configs"],
            self["file_configs"],
            self["default_configs"],
        )

        # NOTE: this must occur AFTER the ChainMap (self["CONFIG"]) has been set
        if init_env:
            self.load_from_environment(env_prefix=env_prefix)

    def _load_values(
        self, conf: dict[str, Any], load_to: str, key_prefix: str = ""
    ) -> None:
        """
        Read and set configuration values from a input dictionary.

        Values that are :obj:`None` are skipped, as are keys that
        aren't a declared option.
        """
        upper_conf = {k.upper(): v for k, v in conf.items()}

        for set_key in self["default_configs"].keys():
            key = f"{key_prefix}{set_key}".upper()

            if upper_conf.get(key) is not None:
                try:
                    self[load_to][set_key] = self.typecast(set_key, upper_conf[key])
                except Exception as ex:
                    log.critical(f"Failed to load config '{key}': {ex}")

    def load_from_dict(self, conf: dict[str, Any]) -> None:
        """
        Update runtime configuration values from a dictionary.
        """
        self._load_values(conf=conf, load_to="runtime_configs")

    def load_from_environment(self, env_prefix: str | None = None) -> None:
        """
        Update configuration values from environment variables.

        Args:
            env_prefix: String prefixing the environment variable names, e.g.
                ``CIPENGINE_`` to load ``CIPENGINE_DEBUG`` into ``DEBUG``.
                If :obj:`None`, then this is set to ``self.env_prefix``.
        """
        if env_prefix is None:
            env_prefix = self.env_prefix

        self._load_values(
            conf=dict(os.environ), load_to="env_configs", key_prefix=env_prefix
        )

    def load_from_file(self, file: Path) -> bool:
        """
        Load stored values from a YAML or JSON file.

        Returns:
            If the load was successful
        """
        log.info(f"Loading configuration from file '{file.name}'...")

        if not file.is_file():
            log.error(f"Configuration file '{file.name}' is not a file or does not exist")
            return False

        if file.suffix.lower() in [".yml", ".yaml"]:
            with file.open(encoding="utf-8") as yaml_file:
                file_config = yaml.safe_load(yaml_file)
        elif file.suffix.lower() == ".json":
            with file.open(encoding="utf-8") as json_file:
                file_config = json.load(json_file)
        else:
            log.error(
                f"Unknown extension '{file.suffix}' for configuration file "
                f"'{file.name}', it should be '.json', '.yaml', or '.yml'"
            )
            return False

        if not isinstance(file_config, dict):
            log.error(f"Configuration file '{file.name}' doesn't contain a mapping")
            return False

        self._load_values(file_config, load_to="file_configs")
        return True

    def typecast(self, key: str, value: Any) -> Any:
        """
        Convert a value to the Python type declared for ``key``.

        This converts "0.5" to 0.5, "true" to True, "/tmp" to Path("/tmp"), etc.
        If the annotation is unusable the type of the default value is used.

        Raises:
            KeyError: If the option named by ``key`` doesn't exist
        """
        fallback: type = type(self["default_configs"][key])
        typecast: Any = get_type_hints(self.__class__).get(key, fallback)

        og = get_origin(typecast)
        args = get_args(typecast)

        # "Path | None" and "Optional[Path]" both resolve here
        if og is Union or (og is not None and type(None) in args):
            if value is None:
                return None
            typecast = next(a for a in args if a is not type(None))
        elif og and isinstance(og, type):
            typecast = og

        if typecast is Path and isinstance(value, str):
            return Path(os.path.realpath(os.path.expanduser(value))) if value else None
        elif typecast is bool and isinstance(value, str):
            return str_to_bool(value)

        return typecast(value)

    def __getattribute__(self, item: str) -> Any:
        if not item.startswith("__") and item in self["CONFIG"]:
            return self["CONFIG"][item]
        else:
            return dict.__getattribute__(self, item)

    def __setattr__(self, key: str, value: Any) -> None:
        # "config.DEBUG = 1" is equivalent to
        # "config["runtime_configs"]["DEBUG"] = 1"
        self["runtime_configs"][key] = value


__all__ = ["SettingsManager"]
