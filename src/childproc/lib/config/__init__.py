"""Configuration loading helpers."""

from childproc.lib.config.settings import ChildprocConfig, load_config, normalize_encoding

__all__ = ["ChildprocConfig", "load_config", "normalize_encoding"]
