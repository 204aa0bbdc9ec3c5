import pytest

from debian_analyzer.versions import debianize_upstream_version, matches_release


@pytest.mark.parametrize(
    "version,expected",
    [
        ("1.0", "1.0"),
        ("1.0-beta1", "1.0~beta1"),
        ("1.0-rc1", "1.0~rc1"),
        ("1.0-alpha", "1.0~alpha"),
        ("1.0a1", "1.0~a1"),
        ("2.3.0rc2", "2.3.0~rc2"),
        ("1_2_3", "1.2.3"),
        ("0.12_01.2", "0.1201.2"),
    ],
)
def test_debianize_upstream_version(version: str, expected: str) -> None:
    assert debianize_upstream_version(version) == expected


@pytest.mark.parametrize(
    "upstream_version,release_version",
    [
        ("1.0", "1.0"),
        ("1.0+ds1", "1.0"),
        ("1.0+dfsg", "1.0"),
        ("1.0~git20200101.abcdef", "1.0"),
        ("1.0-1", "1.0"),
        ("1.14.3+dfsg+~0.15.3", "0.15.3"),
        ("1.0RC1", "1.0rc1"),
    ],
)
def test_matches_release(upstream_version: str, release_version: str) -> None:
    assert matches_release(upstream_version, release_version)


@pytest.mark.parametrize(
    "upstream_version,release_version",
    [
        ("1.0", "1.1"),
        ("1.0+ds1", "1.1"),
        ("1.0.1", "1.0"),
    ],
)
def test_does_not_match_release(upstream_version: str, release_version: str) -> None:
    assert not matches_release(upstream_version, release_version)
