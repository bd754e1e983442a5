"""dux — rerun a command whenever the files it depends on change."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("dux")
except PackageNotFoundError:
    __version__ = "0.1.0"  # fallback for development
