# Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
# All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
# See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
# Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.

"""
Utility helpers for oauthdb.
"""

from .config import (
    ENV_PREFIX,
    load_config_from_env,
    get_config_value,
    parse_duration_string,
)

__all__ = [
    "ENV_PREFIX",
    "load_config_from_env",
    "get_config_value",
    "parse_duration_string",
]
