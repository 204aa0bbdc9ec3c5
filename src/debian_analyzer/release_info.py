from typing import Mapping, Optional

# Version of debhelper shipped in each release
DEBHELPER_VERSIONS: Mapping[str, str] = {
    "stretch": "10.2.5",
    "buster": "12.1.1",
    "bullseye": "13.3.4",
    "bookworm": "13.11.4",
    "trixie": "13.24.2",
    "forky": "13.28",
    "sid": "13.28",
    "focal": "12.10ubuntu1",
    "jammy": "13.6ubuntu1",
    "noble": "13.14.1ubuntu5",
}

# Suite names; these move with every Debian release
RELEASE_ALIASES: Mapping[str, str] = {
    "oldoldstable": "bullseye",
    "oldstable": "bookworm",
    "stable": "trixie",
    "testing": "forky",
    "unstable": "sid",
}


def resolve_release_alias(name: str) -> str:
    """Map `vendor/name` and Debian suite names to a release codename"""
    if "/" in name:
        _, name = name.split("/", 1)
    return RELEASE_ALIASES.get(name, name)


def debhelper_version(release: str) -> Optional[str]:
    return DEBHELPER_VERSIONS.get(resolve_release_alias(release))
