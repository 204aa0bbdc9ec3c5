import importlib.metadata

try:
    __version__ = importlib.metadata.version("debian-analyzer")
except importlib.metadata.PackageNotFoundError:
    # Running from a source tree that was never installed
    __version__ = "N/A"
