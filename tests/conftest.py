import json
import os
import textwrap
from typing import Callable, Mapping

import pytest

from debian_analyzer.dh import dh_assistant

SUPPORTED_COMPAT_LEVELS = {
    "HIGHEST_STABLE_COMPAT_LEVEL": 13,
    "LOWEST_NON_DEPRECATED_COMPAT_LEVEL": 7,
    "LOWEST_VIRTUAL_DEBHELPER_COMPAT_LEVEL": 9,
    "MAX_COMPAT_LEVEL": 14,
    "MIN_COMPAT_LEVEL": 5,
    "MIN_COMPAT_LEVEL_NOT_SCHEDULED_FOR_REMOVAL": 7,
}


@pytest.fixture(autouse=True)
def clear_compat_level_cache():
    dh_assistant.supported_compat_levels.cache_clear()
    yield
    dh_assistant.supported_compat_levels.cache_clear()


@pytest.fixture()
def fake_dh_assistant(monkeypatch) -> Callable[..., None]:
    """Replace the dh_assistant call with canned output"""

    def _install(output: bytes = json.dumps(SUPPORTED_COMPAT_LEVELS).encode()) -> None:
        monkeypatch.setattr(
            dh_assistant,
            "_run_dh_assistant_supported_compat_levels",
            lambda: output,
        )

    return _install


@pytest.fixture()
def package_dir(tmp_path) -> Callable[[Mapping[str, str]], str]:
    """Create a source package tree; file contents are dedented"""

    def _create(files: Mapping[str, str]) -> str:
        for name, content in files.items():
            path = tmp_path / name
            os.makedirs(path.parent, exist_ok=True)
            path.write_text(textwrap.dedent(content), encoding="utf-8")
        return str(tmp_path)

    return _create
