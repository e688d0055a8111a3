"""
The global configuration is exercised by the CLI tests. These tests
cover the edge cases of the precedence layers and type conversion.
"""

import json
import os
from pathlib import Path

import pytest
import yaml

from cipengine.settings_manager import SettingsManager


@pytest.fixture
def settings_cls() -> type[SettingsManager]:
    class TestSettings(SettingsManager):
        TEST_OPTION: str = "default_value"
        ALPHA: bool = False
        TIMEOUT: float = 5.0

    return TestSettings


@pytest.fixture  # scope="function"
def settings_instance(settings_cls: type[SettingsManager]) -> SettingsManager:
    return settings_cls(label="configuration", env_prefix="TEST_", init_env=False)


def test_defaults(settings_instance):
    assert settings_instance.TEST_OPTION == "default_value"
    assert settings_instance.ALPHA is False
    assert settings_instance.TIMEOUT == 5.0


def test_load_from_dict(settings_instance):
    settings_instance.load_from_dict({"ALPHA": True, "test_option": "string", "timeout": "2.5"})
    assert settings_instance.ALPHA
    assert settings_instance.TEST_OPTION == "string"
    assert settings_instance.TIMEOUT == 2.5


def test_load_from_dict_skips_none_and_unknown(settings_instance):
    settings_instance.load_from_dict({"ALPHA": None, "BOGUS": 1})
    assert settings_instance.ALPHA is False
    assert "BOGUS" not in settings_instance["runtime_configs"]


def test_load_from_dict_bad_value(settings_instance):
    settings_instance.load_from_dict({"TIMEOUT": "not a number"})
    assert settings_instance.TIMEOUT == 5.0


def test_load_from_environment(settings_instance, mocker):
    mocker.patch.dict(os.environ, {"TEST_ALPHA": "true", "TEST_TIMEOUT": "1"})
    settings_instance.load_from_environment()
    assert settings_instance.ALPHA
    assert settings_instance.TIMEOUT == 1.0


def test_init_env(settings_cls, mocker):
    mocker.patch.dict(os.environ, {"OTHER_TEST_OPTION": "from env"})
    inst = settings_cls(label="configuration", env_prefix="OTHER_")
    assert inst.TEST_OPTION == "from env"


def test_precedence(settings_instance, mocker, tmp_path):
    conf_file = tmp_path / "config.yaml"
    conf_file.write_text("test_option: from file\ntimeout: 3.0\nalpha: true\n")
    assert settings_instance.load_from_file(conf_file)
    assert settings_instance.TEST_OPTION == "from file"

    mocker.patch.dict(os.environ, {"TEST_TEST_OPTION": "from env", "TEST_TIMEOUT": "4"})
    settings_instance.load_from_environment()
    assert settings_instance.TEST_OPTION == "from env"
    assert settings_instance.TIMEOUT == 4.0

    settings_instance.TEST_OPTION = "from runtime"
    assert settings_instance.TEST_OPTION == "from runtime"
    assert settings_instance.TIMEOUT == 4.0
    assert settings_instance.ALPHA is True


@pytest.mark.parametrize("file_ext", ["json", "yaml", "yml"])
def test_load_from_file(settings_instance, tmp_path, file_ext):
    data = {"test_option": "loaded", "alpha": True}
    conf_file = tmp_path / f"config.{file_ext}"
    if file_ext == "json":
        conf_file.write_text(json.dumps(data))
    else:
        conf_file.write_text(yaml.safe_dump(data))

    assert settings_instance.load_from_file(conf_file)
    assert settings_instance["file_configs"] == {"TEST_OPTION": "loaded", "ALPHA": True}
    assert settings_instance.TEST_OPTION == "loaded"
    assert settings_instance.ALPHA is True
    assert settings_instance.TIMEOUT == 5.0


def test_load_from_file_env_tag(settings_instance, tmp_path, mocker):
    mocker.patch.dict(os.environ, {"PLC_TIMEOUT": "9.5"})
    conf_file = tmp_path / "config.yaml"
    conf_file.write_text(
        "timeout: !ENV ['PLC_TIMEOUT', 1.0]\ntest_option: !ENV ['UNSET_VARIABLE_XYZ', 'fallback']\n"
    )

    assert settings_instance.load_from_file(conf_file)
    assert settings_instance.TIMEOUT == 9.5
    assert settings_instance.TEST_OPTION == "fallback"


@pytest.mark.parametrize(
    ("name", "content"),
    [("missing.yaml", None), ("config.txt", "alpha: true"), ("list.yaml", "- 1\n- 2\n")],
)
def test_load_from_file_invalid(settings_instance, tmp_path, name, content):
    conf_file = tmp_path / name
    if content is not None:
        conf_file.write_text(content)
    assert not settings_instance.load_from_file(conf_file)
    assert not settings_instance["file_configs"]


def test_typecast(tmp_path):
    class TestTypecast(SettingsManager):
        TEST_OPTION: str = "default_value"
        ALPHA: bool = False
        PTH: Path = Path("somepath")
        OPT_PATH: Path | None = None
        COUNT: int = 0

    inst = TestTypecast(label="configuration", env_prefix="TEST_", init_env=False)
    assert inst.typecast("ALPHA", False) is False
    assert inst.typecast("ALPHA", "yes") is True
    assert inst.typecast("ALPHA", "false") is False
    assert inst.typecast("PTH", tmp_path) == tmp_path
    assert inst.typecast("PTH", tmp_path.as_posix()) == Path(os.path.realpath(tmp_path))
    assert inst.typecast("OPT_PATH", None) is None
    assert inst.typecast("OPT_PATH", tmp_path.as_posix()) == Path(os.path.realpath(tmp_path))
    assert inst.typecast("TEST_OPTION", 1) == "1"
    assert inst.typecast("COUNT", "3") == 3

    with pytest.raises(ValueError):
        inst.typecast("ALPHA", "maybe")
    with pytest.raises(KeyError):
        inst.typecast("NOT_AN_OPTION", 1)
