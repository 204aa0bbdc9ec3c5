import textwrap

import pytest
import tomlkit

from debian_analyzer.debcargo import (
    CURRENT_STANDARDS_VERSION,
    DEFAULT_MAINTAINER,
    CrateVersion,
    DebcargoEditor,
    debnormalize,
    unmangle_debcargo_version,
)
from debian_analyzer.exceptions import DocumentParseError
from debian_analyzer.relations import Entry

CARGO_TOML = textwrap.dedent(
    """\
    [package]
    name = "foo_bar"
    version = "1.2.3"
    description = "Frobnicates widgets"
    homepage = "https://example.org/foo"

    [features]
    default = []
    std = []
    """
)

DEBCARGO_TOML = textwrap.dedent(
    """\
    # Managed by the Rust team
    overlay = "."

    [source]
    vcs_git = "https://example.org/foo.git"
    vcs_browser = "https://example.org/foo"
    """
)


def test_defaults() -> None:
    editor = DebcargoEditor.from_text("", CARGO_TOML)
    source = editor.source()
    assert source.name == "rust-foo-bar"
    assert source.section == "rust"
    assert source.priority == "optional"
    assert source.standards_version == CURRENT_STANDARDS_VERSION
    assert source.maintainer == DEFAULT_MAINTAINER
    assert source.homepage == "https://example.org/foo"
    assert source.vcs_git == (
        "https://salsa.debian.org/rust-team/debcargo-conf.git [src/foo_bar]"
    )
    assert source.vcs_browser == (
        "https://salsa.debian.org/rust-team/debcargo-conf/tree/master/src/foo_bar"
    )
    assert not source.rules_requires_root
    assert source.uploaders is None
    assert not source.build_depends
    assert source.extra_lines == []
    assert str(editor) == ""


def test_binaries() -> None:
    editor = DebcargoEditor.from_text("", CARGO_TOML)
    binaries = editor.binaries()
    assert [(b.kind, b.name) for b in binaries] == [
        ("lib", "librust-foo-bar-dev"),
        ("bin", "foo_bar"),
    ]
    lib = binaries[0]
    assert lib.architecture == "any"
    assert lib.multi_arch == "same"
    assert lib.summary == "Frobnicates widgets"
    assert lib.description == (
        'Frobnicates widgets\n Source code for Debianized Rust crate "foo_bar"'
    )


def test_semver_suffix() -> None:
    editor = DebcargoEditor.from_text("semver_suffix = true\n", CARGO_TOML)
    assert editor.source().name == "rust-foo-bar-1.2"
    assert [b.name for b in editor.binaries()] == ["librust-foo-bar-1.2-dev"]


def test_bin_name_override() -> None:
    editor = DebcargoEditor.from_text('bin_name = "frob"\n', CARGO_TOML)
    assert [b.name for b in editor.binaries()] == ["librust-foo-bar-dev", "frob"]


def test_binary_overrides() -> None:
    debcargo_toml = textwrap.dedent(
        """\
        summary = "Widget frobnication"

        [packages.lib]
        section = "libdevel"
        depends = "libssl-dev"

        [packages.bin]
        summary = "Frobnicate widgets from the command line"
        description = "Ships the frob binary."
        """
    )
    editor = DebcargoEditor.from_text(debcargo_toml, CARGO_TOML)
    lib, binary = editor.binaries()
    assert lib.section == "libdevel"
    assert lib.depends == "libssl-dev"
    assert lib.recommends is None
    assert lib.summary == "Widget frobnication - Rust source code"
    assert binary.section is None
    assert binary.description == (
        "Frobnicate widgets from the command line\n Ships the frob binary."
    )


def test_default_provides() -> None:
    editor = DebcargoEditor.from_text("", CARGO_TOML)
    lib = editor.binaries()[0]
    provides = lib.default_provides()
    assert provides is not None
    assert provides.startswith("\n")
    lines = [p.strip().rstrip(",") for p in provides.strip().split("\n")]
    assert "librust-foo-bar+default-dev (= ${binary:Version})" in lines
    assert "librust-foo-bar-1.2.3+std-dev (= ${binary:Version})" in lines
    assert "librust-foo-bar-dev (= ${binary:Version})" not in lines
    assert len(lines) == 4 * 3 - 1
    assert editor.binaries()[1].default_provides() is None


def test_without_cargo_toml() -> None:
    editor = DebcargoEditor.from_text(DEBCARGO_TOML)
    assert editor.crate_name is None
    assert editor.source().name is None
    assert editor.binaries() == []
    assert editor.source().vcs_git == "https://example.org/foo.git"


def test_from_directory_without_cargo_toml(package_dir) -> None:
    directory = package_dir({"debian/debcargo.toml": DEBCARGO_TOML})
    editor = DebcargoEditor.from_directory(directory)
    assert editor.cargo is None
    assert editor.binaries() == []


def test_from_directory(package_dir) -> None:
    directory = package_dir(
        {"debian/debcargo.toml": DEBCARGO_TOML, "Cargo.toml": CARGO_TOML}
    )
    editor = DebcargoEditor.from_directory(directory)
    assert editor.source().name == "rust-foo-bar"
    assert editor.features == frozenset(["default", "std"])


def test_set_vcs_svn_goes_to_extra_lines() -> None:
    editor = DebcargoEditor.from_text(DEBCARGO_TOML, CARGO_TOML)
    source = editor.source()
    source.set_vcs_url("Svn", "svn://example.org/foo")
    assert source.get_vcs_url("svn") == "svn://example.org/foo"
    assert source.get_vcs_url("Git") == "https://example.org/foo.git"
    assert source.get_vcs_url("Browser") == "https://example.org/foo"

    source.set_vcs_url("svn", "svn://example.org/bar")
    doc = tomlkit.parse(str(editor))
    assert list(doc["source"]["extra_lines"]) == ["Vcs-Svn: svn://example.org/bar"]
    assert doc["source"]["vcs_git"] == "https://example.org/foo.git"
    assert doc["source"]["vcs_browser"] == "https://example.org/foo"
    assert doc["overlay"] == "."


def test_set_vcs_git() -> None:
    editor = DebcargoEditor.from_text(DEBCARGO_TOML, CARGO_TOML)
    editor.source().set_vcs_url("git", "https://example.org/other.git")
    assert str(editor) == DEBCARGO_TOML.replace("foo.git", "other.git")


def test_unchanged_value_keeps_document() -> None:
    editor = DebcargoEditor.from_text(DEBCARGO_TOML, CARGO_TOML)
    source = editor.source()
    source.vcs_browser = "https://example.org/foo"
    assert str(editor) == DEBCARGO_TOML


def test_ensure_build_dep_creates_array() -> None:
    editor = DebcargoEditor.from_text(DEBCARGO_TOML, CARGO_TOML)
    source = editor.source()
    assert source.ensure_build_dep(Entry.parse("libssl-dev"))
    assert not source.ensure_build_dep(Entry.parse("libssl-dev"))
    assert source.ensure_build_dep(Entry.parse("cmake"))
    assert [e.names for e in source.build_depends] == [["cmake"], ["libssl-dev"]]
    doc = tomlkit.parse(str(editor))
    assert list(doc["source"]["build_depends"]) == ["cmake", "libssl-dev"]


def test_build_depends_edit_keeps_array_layout() -> None:
    text = textwrap.dedent(
        """\
        [source]
        build_depends = [
            # Crypto
            "libssl-dev",
            "zlib1g-dev",  # compression
        ]
        """
    )
    editor = DebcargoEditor.from_text(text, CARGO_TOML)
    source = editor.source()
    assert source.ensure_build_dep(Entry.parse("pkg-config"))
    new_text = str(editor)
    assert "# Crypto\n" in new_text
    assert '"zlib1g-dev",  # compression\n' in new_text
    assert list(tomlkit.parse(new_text)["source"]["build_depends"]) == [
        "libssl-dev",
        "pkg-config",
        "zlib1g-dev",
    ]


def test_build_depends_item_with_several_entries() -> None:
    text = '[source]\nbuild_depends = ["cmake", "foo,bar"]\n'
    editor = DebcargoEditor.from_text(text, CARGO_TOML)
    source = editor.source()
    assert [e.names for e in source.build_depends] == [["cmake"], ["foo"], ["bar"]]
    assert source.ensure_build_dep(Entry.parse("zzz"))
    doc = tomlkit.parse(str(editor))
    assert list(doc["source"]["build_depends"]) == ["cmake", "foo,bar", "zzz"]


def test_uploaders_edit_keeps_array_layout() -> None:
    text = textwrap.dedent(
        """\
        [source]
        uploaders = [
            "Jane <jane@example.com>",  # lead
            "Jim <jim@example.com>",
        ]
        """
    )
    editor = DebcargoEditor.from_text(text, CARGO_TOML)
    editor.source().uploaders = ["Jane <jane@example.com>", "Joe <joe@example.com>"]
    assert str(editor) == text.replace("Jim <jim@", "Joe <joe@")


def test_source_setters() -> None:
    editor = DebcargoEditor.from_text("", CARGO_TOML)
    source = editor.source()
    source.section = "devel"
    source.maintainer = "Jane <jane@example.com>"
    source.uploaders = ["Jim <jim@example.com>"]
    source.rules_requires_root = True
    source.standards_version = "4.7.0"

    doc = tomlkit.parse(str(editor))
    assert doc["source"]["section"] == "devel"
    assert doc["source"]["requires_root"] == "yes"
    reread = DebcargoEditor.from_text(str(editor), CARGO_TOML).source()
    assert reread.section == "devel"
    assert reread.maintainer == "Jane <jane@example.com>"
    assert reread.uploaders == ["Jim <jim@example.com>"]
    assert reread.rules_requires_root
    assert reread.standards_version == "4.7.0"


def test_commit(tmp_path) -> None:
    path = tmp_path / "debcargo.toml"
    path.write_text(DEBCARGO_TOML)
    editor = DebcargoEditor.open(str(path))
    assert not editor.commit()
    editor.source().homepage = "https://example.org/home"
    assert editor.commit()
    content = path.read_text()
    assert content.startswith("# Managed by the Rust team\n")
    assert tomlkit.parse(content)["source"]["homepage"] == "https://example.org/home"


def test_invalid_toml() -> None:
    with pytest.raises(DocumentParseError):
        DebcargoEditor.from_text("[source\n")


@pytest.mark.parametrize(
    "version,expected",
    [
        ("1.2.3", CrateVersion(1, 2, 3)),
        ("0.1.0-alpha.1", CrateVersion(0, 1, 0, "alpha.1")),
        ("1.0.0+build5", CrateVersion(1, 0, 0, None, "build5")),
    ],
)
def test_crate_version(version: str, expected: CrateVersion) -> None:
    assert CrateVersion.parse(version) == expected
    assert str(expected) == version


@pytest.mark.parametrize("version", ["1.2", "x.y.z", ""])
def test_invalid_crate_version(version: str) -> None:
    with pytest.raises(DocumentParseError):
        CrateVersion.parse(version)


def test_debnormalize() -> None:
    assert debnormalize("Foo_Bar") == "foo-bar"


def test_unmangle_debcargo_version() -> None:
    assert unmangle_debcargo_version("1.0.0~alpha.1") == "1.0.0-alpha.1"
