"""
Utility functions for ID generation and timestamps
"""
import random
import string
import time

BASE36 = string.digits + string.ascii_lowercase


def now_ms() -> int:
    """Current wall-clock time in milliseconds"""
    return int(time.time() * 1000)


def generate_connection_id(suffix_length: int = 6) -> str:
    """Generate a process-unique connection ID: '<epoch-ms>-<base36 suffix>'"""
    suffix = "".join(random.choice(BASE36) for _ in range(suffix_length))
    return f"{now_ms()}-{suffix}"
