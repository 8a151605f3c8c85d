# Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
# All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
# See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
# Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.

"""
Common utilities shared by the store components.
"""

import time
import uuid
from typing import Callable

Clock = Callable[[], int]
"""Returns the current time in milliseconds since the Unix epoch."""


def generate_id(prefix: str = "") -> str:
    """Generate a unique identifier with optional prefix."""
    unique_id = str(uuid.uuid4())
    return f"{prefix}{unique_id}" if prefix else unique_id


def get_current_timestamp_ms() -> int:
    """Get current timestamp in milliseconds since epoch."""
    return int(time.time() * 1000)


def minutes_to_ms(minutes: float) -> int:
    """Convert a number of minutes to milliseconds."""
    return int(minutes * 60 * 1000)
