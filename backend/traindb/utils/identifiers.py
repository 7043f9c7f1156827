from __future__ import annotations

import os
import secrets
import time
import uuid


def generate_uuid7() -> str:
    """
    Generate a UUIDv7 string (time-ordered).

    Used as the primary key default for every table so ids sort by creation.
    """
    ts_ms = int(time.time() * 1000)
    raw = bytearray(ts_ms.to_bytes(6, "big", signed=False) + os.urandom(10))
    raw[6] = (raw[6] & 0x0F) | 0x70
    raw[8] = (raw[8] & 0x3F) | 0x80
    return str(uuid.UUID(bytes=bytes(raw)))


def generate_author_id() -> str:
    """Stable external id handed to other systems (random UUID4)."""
    return str(uuid.uuid4())


def generate_task_id() -> str:
    """Id for a task embedded in a day plan, e.g. 'task_1718000000000_k3j9x2'."""
    return f"task_{int(time.time() * 1000)}_{secrets.token_hex(3)}"
