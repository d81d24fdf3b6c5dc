import importlib.metadata

try:
    VERSION = importlib.metadata.version("rvc-claim")
except importlib.metadata.PackageNotFoundError:
    # Not installed (e.g. running tests straight from the source tree)
    VERSION = "0.0.0-dev"
