import logging
import time
from datetime import datetime, timezone
from functools import wraps
from typing import Any, Optional

from dateutil.parser import isoparse

from nodekeeper.types import DecoratedFn

log = logging.getLogger("nodekeeper")

UTC_Date_Format = "%Y-%m-%dT%H:%M:%SZ"
# suffix of launch configuration names: sorts lexically and numerically alike
Suffix_Date_Format = "%Y%m%d%H%M%S"


def utc() -> datetime:
    return datetime.now(timezone.utc)


def utc_str(dto: Optional[datetime] = None) -> str:
    dt = dto if dto is not None else utc()
    if dt.tzinfo is not None and dt.tzname() != "UTC":
        offset = dt.tzinfo.utcoffset(dt)
        if offset is not None and offset.total_seconds() != 0:
            dt = (dt - offset).replace(tzinfo=timezone.utc)
    return dt.strftime(UTC_Date_Format)


def parse_utc(date_string: str) -> datetime:
    date = isoparse(date_string)
    if date.tzinfo is None:
        date = date.replace(tzinfo=timezone.utc)
    return date


def maybe_utc(value: Any) -> Optional[datetime]:
    """
    Boto returns datetime objects, json fixtures and kubernetes return strings.
    Anything else (including None) is treated as unknown.
    """
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)
    elif isinstance(value, str) and value:
        try:
            return parse_utc(value)
        except ValueError:
            log.debug(f"Can not parse timestamp: {value}")
            return None
    return None


def time_suffix(dto: Optional[datetime] = None) -> str:
    dt = dto if dto is not None else utc()
    return dt.astimezone(timezone.utc).strftime(Suffix_Date_Format)


def log_runtime(f: DecoratedFn) -> DecoratedFn:
    @wraps(f)
    def timer(*args: Any, **kwargs: Any) -> Any:
        start = time.time()
        ret = f(*args, **kwargs)
        runtime = time.time() - start
        args_str = ", ".join([repr(arg) for arg in args])
        kwargs_str = ", ".join([f"{k}={repr(v)}" for k, v in kwargs.items()])
        if len(args) > 0 and len(kwargs) > 0:
            args_str += ", "
        log.debug(f"Runtime of {f.__name__}({args_str}{kwargs_str}): {runtime:.3f} seconds")
        return ret

    return timer  # type: ignore
