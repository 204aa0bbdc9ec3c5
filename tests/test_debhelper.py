import pytest

from debian_analyzer.abstract_control import ControlEditor, SourceView
from debian_analyzer.control import ControlFileEditor
from debian_analyzer.debcargo import DebcargoEditor
from debian_analyzer.debhelper import (
    ensure_minimum_debhelper_version,
    get_debhelper_compat_level,
    get_debhelper_compat_level_from_control,
    get_sequences,
    highest_stable_compat_level,
    lowest_non_deprecated_compat_level,
    maximum_debhelper_compat_version,
    parse_debhelper_compat,
    read_debhelper_compat_file,
    resolve_debhelper_compat_level,
)
from debian_analyzer.dh import dh_assistant
from debian_analyzer.exceptions import (
    ComplexDebhelperCompatRule,
    DebhelperCompatWithoutVersion,
    DebhelperInWrongField,
    InvalidVersionError,
)
from debian_analyzer.release_info import resolve_release_alias


def _editor(build_depends: str, **fields: str) -> ControlEditor:
    text = "Source: foo\n"
    if build_depends:
        text += f"Build-Depends: {build_depends}\n"
    for field, value in fields.items():
        text += f"{field.replace('_', '-')}: {value}\n"
    return ControlEditor(ControlFileEditor.from_text(text))


def _source(editor: ControlEditor) -> SourceView:
    source = editor.source()
    assert source is not None
    return source


def _build_depends(editor: ControlEditor) -> str:
    return str(_source(editor).relations("Build-Depends"))


def test_ensure_minimum_debhelper_version_raises_floor() -> None:
    editor = _editor("debhelper (>= 10)")
    assert ensure_minimum_debhelper_version(_source(editor), "11")
    assert _build_depends(editor) == "debhelper (>= 11)"


def test_ensure_minimum_debhelper_version_already_satisfied() -> None:
    editor = _editor("debhelper (>= 10)")
    assert not ensure_minimum_debhelper_version(_source(editor), "9")
    assert str(editor) == "Source: foo\nBuild-Depends: debhelper (>= 10)\n"


def test_ensure_minimum_debhelper_version_next_to_compat() -> None:
    editor = _editor("debhelper-compat (= 10)")
    assert ensure_minimum_debhelper_version(_source(editor), "11")
    assert _build_depends(editor) == "debhelper (>= 11), debhelper-compat (= 10)"


@pytest.mark.parametrize("minimum_version", ["10", "9.20160709", "10~"])
def test_ensure_minimum_debhelper_version_compat_is_enough(
    minimum_version: str,
) -> None:
    editor = _editor("debhelper-compat (= 10), python3")
    assert not ensure_minimum_debhelper_version(_source(editor), minimum_version)
    assert _build_depends(editor) == "debhelper-compat (= 10), python3"


def test_ensure_minimum_debhelper_version_adds_field() -> None:
    editor = _editor("")
    assert ensure_minimum_debhelper_version(_source(editor), "12")
    assert str(editor) == "Source: foo\nBuild-Depends: debhelper (>= 12)\n"


@pytest.mark.parametrize("field", ["Build-Depends-Indep", "Build-Depends-Arch"])
def test_ensure_minimum_debhelper_version_wrong_field(field: str) -> None:
    editor = _editor("python3", **{field.replace("-", "_"): "debhelper (>= 9)"})
    with pytest.raises(DebhelperInWrongField) as e_info:
        ensure_minimum_debhelper_version(_source(editor), "11")
    assert e_info.value.field == field


@pytest.mark.parametrize(
    "build_depends",
    [
        "debhelper-compat (= 10) | foo",
        "debhelper-compat (>= 10)",
    ],
)
def test_ensure_minimum_debhelper_version_complex_compat(build_depends: str) -> None:
    editor = _editor(build_depends)
    with pytest.raises(ComplexDebhelperCompatRule):
        ensure_minimum_debhelper_version(_source(editor), "11")


def test_ensure_minimum_debhelper_version_compat_without_version() -> None:
    editor = _editor("debhelper-compat")
    with pytest.raises(DebhelperCompatWithoutVersion):
        ensure_minimum_debhelper_version(_source(editor), "11")


def test_ensure_minimum_debhelper_version_manifest() -> None:
    backend = DebcargoEditor.from_text(
        '[source]\nbuild_depends = ["debhelper (>= 9)"]\n',
        '[package]\nname = "frob"\nversion = "1.0.0"\n',
    )
    editor = ControlEditor(backend)
    assert ensure_minimum_debhelper_version(_source(editor), "12")
    assert [str(e) for e in backend.source().build_depends] == ["debhelper (>= 12)"]


def test_ensure_minimum_debhelper_version_manifest_keeps_layout() -> None:
    debcargo_toml = (
        "[source]\n"
        "build_depends = [\n"
        '    "debhelper (>= 10)",  # needed for dh\n'
        '    "libssl-dev",\n'
        "]\n"
    )
    backend = DebcargoEditor.from_text(
        debcargo_toml,
        '[package]\nname = "frob"\nversion = "1.0.0"\n',
    )
    assert ensure_minimum_debhelper_version(_source(ControlEditor(backend)), "12")
    assert str(backend) == debcargo_toml.replace("(>= 10)", "(>= 12)")


@pytest.mark.parametrize("minimum_version", ["", "not a version!"])
def test_ensure_minimum_debhelper_version_invalid_version(minimum_version: str) -> None:
    editor = _editor("debhelper (>= 10)")
    with pytest.raises(InvalidVersionError) as e_info:
        ensure_minimum_debhelper_version(_source(editor), minimum_version)
    assert e_info.value.version_text == minimum_version


@pytest.mark.parametrize(
    "text,expected",
    [
        ("12\n", 12),
        ("10 # keep in sync\n", 10),
        ("", None),
        ("# nothing\n", None),
        ("abc\n", None),
    ],
)
def test_parse_debhelper_compat(text: str, expected) -> None:
    assert parse_debhelper_compat(text) == expected


def test_read_debhelper_compat_file(tmp_path) -> None:
    path = tmp_path / "compat"
    assert read_debhelper_compat_file(str(path)) is None
    path.write_text("11\n")
    assert read_debhelper_compat_file(str(path)) == 11


@pytest.mark.parametrize(
    "build_depends,fields,expected",
    [
        ("debhelper-compat (= 13), python3", {}, 13),
        ("python3, debhelper-compat (= 12)", {}, 12),
        ("debhelper (>= 12)", {}, None),
        ("debhelper-compat (= 13)", {"X_DH_Compat": "14"}, 14),
        ("debhelper (>= 14~)", {"X_DH_Compat": "14"}, 14),
    ],
)
def test_get_debhelper_compat_level_from_control(
    build_depends: str,
    fields,
    expected,
) -> None:
    editor = _editor(build_depends, **fields)
    assert get_debhelper_compat_level_from_control(_source(editor)) == expected


def test_get_debhelper_compat_level_from_compat_file(package_dir) -> None:
    directory = package_dir(
        {
            "debian/compat": "11\n",
            "debian/control": "Source: foo\nBuild-Depends: debhelper-compat (= 13)\n",
        }
    )
    assert get_debhelper_compat_level(directory) == 11


def test_get_debhelper_compat_level_from_control_file(package_dir) -> None:
    directory = package_dir(
        {"debian/control": "Source: foo\nBuild-Depends: debhelper-compat (= 13)\n"}
    )
    assert get_debhelper_compat_level(directory) == 13


def test_get_debhelper_compat_level_nothing(tmp_path) -> None:
    assert get_debhelper_compat_level(str(tmp_path)) is None


def test_resolve_debhelper_compat_level(package_dir) -> None:
    directory = package_dir(
        {
            "debian/compat": "11\n",
            "debian/control": "Source: foo\nBuild-Depends: debhelper-compat (= 13)\n",
        }
    )
    editor = ControlEditor(ControlFileEditor.from_directory(directory))
    assert resolve_debhelper_compat_level(editor, directory) == 13
    no_compat = _editor("debhelper (>= 11)")
    assert resolve_debhelper_compat_level(no_compat, directory) == 11


def test_get_sequences() -> None:
    editor = _editor(
        "debhelper-compat (= 13), dh-sequence-python3,\n"
        " dh-sequence-sphinxdoc <!nodoc>, python3"
    )
    assert get_sequences(_source(editor)) == ["python3", "sphinxdoc"]
    assert get_sequences(_source(_editor("debhelper-compat (= 13)"))) == []


@pytest.mark.parametrize(
    "release,expected",
    [
        ("stretch", 10),
        ("buster", 12),
        ("bookworm", 13),
        ("focal", 12),
        ("debian/bullseye", 13),
    ],
)
def test_maximum_debhelper_compat_version(release: str, expected: int) -> None:
    assert maximum_debhelper_compat_version(release) == expected


@pytest.mark.parametrize(
    "release",
    ["sid", "unstable", "debian/sid", "debian/unstable", "testing", "stable"],
)
def test_maximum_debhelper_compat_version_suite_names(monkeypatch, release: str) -> None:
    def _not_called() -> bytes:
        raise AssertionError("dh_assistant should not be needed for a known release")

    monkeypatch.setattr(
        dh_assistant, "_run_dh_assistant_supported_compat_levels", _not_called
    )
    assert maximum_debhelper_compat_version(release) == 13


@pytest.mark.parametrize(
    "name,expected",
    [
        ("unstable", "sid"),
        ("debian/testing", "forky"),
        ("ubuntu/noble", "noble"),
        ("bookworm", "bookworm"),
    ],
)
def test_resolve_release_alias(name: str, expected: str) -> None:
    assert resolve_release_alias(name) == expected


def test_maximum_debhelper_compat_version_unknown_release(fake_dh_assistant) -> None:
    fake_dh_assistant()
    assert maximum_debhelper_compat_version("experimental") == 7
    assert maximum_debhelper_compat_version("no-such-release") == 7


def test_compat_level_bounds(fake_dh_assistant) -> None:
    fake_dh_assistant()
    assert lowest_non_deprecated_compat_level() == 7
    assert highest_stable_compat_level() == 13
