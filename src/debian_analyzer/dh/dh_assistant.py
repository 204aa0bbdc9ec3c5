import dataclasses
import functools
import json
import subprocess
from typing import Any, Mapping

from debian_analyzer.exceptions import CompatLevelsLookupError
from debian_analyzer.util import escape_shell

_SUPPORTED_COMPAT_LEVELS_FIELDS = {
    "HIGHEST_STABLE_COMPAT_LEVEL": "highest_stable_compat_level",
    "LOWEST_NON_DEPRECATED_COMPAT_LEVEL": "lowest_non_deprecated_compat_level",
    "LOWEST_VIRTUAL_DEBHELPER_COMPAT_LEVEL": "lowest_virtual_debhelper_compat_level",
    "MAX_COMPAT_LEVEL": "max_compat_level",
    "MIN_COMPAT_LEVEL": "min_compat_level",
    "MIN_COMPAT_LEVEL_NOT_SCHEDULED_FOR_REMOVAL": "min_compat_level_not_scheduled_for_removal",
}


@dataclasses.dataclass(frozen=True, slots=True)
class SupportedCompatLevels:
    highest_stable_compat_level: int
    lowest_non_deprecated_compat_level: int
    lowest_virtual_debhelper_compat_level: int
    max_compat_level: int
    min_compat_level: int
    min_compat_level_not_scheduled_for_removal: int

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> "SupportedCompatLevels":
        kwargs = {}
        for json_key, attr_name in _SUPPORTED_COMPAT_LEVELS_FIELDS.items():
            value = data.get(json_key)
            # bool is a subclass of int but never a valid compat level
            if not isinstance(value, int) or isinstance(value, bool):
                raise CompatLevelsLookupError(
                    f"dh_assistant supported-compat-levels did not provide an integer for {json_key}"
                )
            kwargs[attr_name] = value
        return cls(**kwargs)


_DH_ASSISTANT_CMD = ["dh_assistant", "supported-compat-levels"]


def _run_dh_assistant_supported_compat_levels() -> bytes:
    try:
        return subprocess.check_output(
            _DH_ASSISTANT_CMD,
            stderr=subprocess.DEVNULL,
        )
    except FileNotFoundError as e:
        raise CompatLevelsLookupError(
            "Cannot determine the supported compat levels: dh_assistant is not available"
        ) from e
    except subprocess.CalledProcessError as e:
        raise CompatLevelsLookupError(
            f"The command << {escape_shell(*_DH_ASSISTANT_CMD)} >> failed with exit code {e.returncode}"
        ) from e


@functools.lru_cache(1)
def supported_compat_levels() -> SupportedCompatLevels:
    """The compat levels supported by the installed debhelper

    The result of `dh_assistant supported-compat-levels` is computed once and
    reused for the rest of the process.
    """
    output = _run_dh_assistant_supported_compat_levels()
    try:
        data = json.loads(output)
    except ValueError as e:
        raise CompatLevelsLookupError(
            "dh_assistant supported-compat-levels did not return valid JSON"
        ) from e
    if not isinstance(data, dict):
        raise CompatLevelsLookupError(
            "dh_assistant supported-compat-levels did not return a JSON object"
        )
    return SupportedCompatLevels.from_json(data)
