from .loader import load_app_settings, load_filter_config
from .model import AppSettings

__all__ = ["AppSettings", "load_app_settings", "load_filter_config"]
