import secrets
import time
import traceback
from datetime import datetime
from typing import Any, Optional

from err_utils import ValidationError


def get_function_name():
    """取得呼叫端函數名稱 (used in log messages)"""
    return traceback.extract_stack(None, 2)[0][2]


def new_handle(prefix: str, base: Optional[str] = None) -> str:
    """
    Generate an opaque record handle.

    People get ``p-<millis>-<rand>``, families get
    ``f-<base>-<millis>-<rand>`` where base is usually the handle of
    the first known parent, so a family handle tells at a glance
    whose union it records.

    Args:
        prefix (str): 'p' for people, 'f' for families
        base (str, optional): handle embedded in the new handle

    Returns:
        str: a new unique handle

    Example:
        >>> new_handle('f', 'p-1700000000000-a1b2c3')
        'f-p-1700000000000-a1b2c3-1700000000123-0f9e8d'
    """
    millis = int(time.time() * 1000)
    suffix = secrets.token_hex(3)
    if base:
        return f"{prefix}-{base}-{millis}-{suffix}"
    return f"{prefix}-{millis}-{suffix}"


def clean_handle(value: Any) -> Optional[str]:
    """Form selects use '' for 'not chosen'; normalize that to None."""
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def parse_year(value: Any, field: str = 'year') -> Optional[int]:
    """
    Convert a year typed into a form into an int.

    Args:
        value: '', None, int or a numeric string
        field (str): field name used in the error message

    Returns:
        Optional[int]: the year, or None when left blank

    Raises:
        ValidationError: If the value is not a whole number
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValidationError(f"Invalid {field}: {value!r}")
    if isinstance(value, int):
        return value
    text = str(value).strip()
    if not text:
        return None
    try:
        return int(text)
    except ValueError:
        raise ValidationError(f"Invalid {field}: {value!r}. Use a number, e.g. 1985")


def now_iso() -> str:
    return datetime.now().isoformat(timespec='seconds')


# Helper function to format timestamps
def format_timestamp(ts) -> str:
    """
    格式化時間戳記為易讀字串

    Args:
        ts: 時間戳記 (可以是 datetime 對象或字串)

    Returns:
        str: 格式化後的時間字串，若解析失敗則返回原始字串
    """
    if not ts:
        return "Never"

    if isinstance(ts, datetime):
        return ts.strftime('%Y-%m-%d %H:%M:%S')

    ts_str = str(ts)
    try:
        # ISO 8601 (with the 'T' separator)
        if 'T' in ts_str:
            date_time = datetime.fromisoformat(ts_str.replace('Z', '+00:00'))
            return date_time.strftime('%Y-%m-%d %H:%M:%S')
        for fmt in ('%Y-%m-%d %H:%M:%S.%f', '%Y-%m-%d %H:%M:%S'):
            try:
                date_time = datetime.strptime(ts_str, fmt)
                break
            except ValueError:
                continue
        else:
            return ts_str
        return date_time.strftime('%Y-%m-%d %H:%M:%S')
    except (ValueError, TypeError):
        return ts_str
