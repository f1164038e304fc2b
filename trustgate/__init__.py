"""trustgate - command and tool trust engine for AI coding assistants."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("trustgate")
except PackageNotFoundError:
    __version__ = "0.0.0+local"
__app_name__ = "trustgate"
