# Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
# All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
# See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
# Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.

"""
Common helpers for the oauthdb package: clock, identifiers and
cooperative cancellation.
"""

from .utils import (
    Clock,
    generate_id,
    get_current_timestamp_ms,
    minutes_to_ms,
)

from .cancellation import CancellationToken

__all__ = [
    "Clock",
    "generate_id",
    "get_current_timestamp_ms",
    "minutes_to_ms",
    "CancellationToken",
]
