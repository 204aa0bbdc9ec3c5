import re

_PRE_RELEASE_SUFFIXES = ("rc", "beta", "alpha")
_DOTTED_PRE_RELEASE = re.compile(r"(.*)\.([0-9])(a|b|rc|alpha|beta)([0-9]*)")
_VCS_SNAPSHOT_SUFFIX = re.compile(r"(.*)[~+-](ds|dfsg|git|bzr|svn|hg).*")
_ANY_SUFFIX = re.compile(r"(.*)[~+-].*")
_TRAILING_TILDE_VERSION = re.compile(r".*~([0-9.]+)$")


def debianize_upstream_version(version: str) -> str:
    """Turn an upstream version into something suitable for a Debian version

    >>> debianize_upstream_version("1.0-rc1")
    '1.0~rc1'
    >>> debianize_upstream_version("1.0a1")
    '1.0~a1'
    """
    underscores = version.count("_")
    dots = version.count(".")
    if underscores == 1 and dots > 1:
        # Common for perl modules; Debian packages usually just drop the underscore.
        version = version.replace("_", "")
    elif underscores > 0 and dots == 0:
        version = version.replace("_", ".")

    for suffix in _PRE_RELEASE_SUFFIXES:
        version = version.replace(f"-{suffix}", f"~{suffix}")

    m = _DOTTED_PRE_RELEASE.search(version)
    if m:
        return f"{m.group(1)}.{m.group(2)}~{m.group(3)}{m.group(4)}"
    return version


def matches_release(upstream_version: str, release_version: str) -> bool:
    """Whether an upstream version corresponds to an upstream release

    Repacking and VCS snapshot suffixes are ignored.

    >>> matches_release("1.0+ds1", "1.0")
    True
    """
    release_version = release_version.lower()
    upstream_version = upstream_version.lower()
    if upstream_version == release_version:
        return True
    m = _VCS_SNAPSHOT_SUFFIX.search(upstream_version)
    if m and m.group(1) == release_version:
        return True
    m = _ANY_SUFFIX.search(upstream_version)
    if m and m.group(1) == release_version:
        return True
    m = _TRAILING_TILDE_VERSION.search(upstream_version)
    if m and m.group(1) == release_version:
        return True
    return False
