# src/re_estimation/__init__.py
from .version_info import VERSION as __version__
