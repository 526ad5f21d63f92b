from typing import List, Optional, Sequence

from nodekeeper.configuration import DefaultRetainVersions
from nodekeeper.model import LaunchVersion


def sort_versions(versions: Sequence[LaunchVersion]) -> List[LaunchVersion]:
    """
    Versions ordered by creation time, oldest first.
    A version without creation time can not be proven to be old: it sorts as the newest.
    Undated versions keep their relative order.
    """
    dated = sorted((v for v in versions if v.created is not None), key=lambda v: v.created)  # type: ignore
    undated = [v for v in versions if v.created is None]
    return dated + undated


def deletable_versions(versions: Sequence[LaunchVersion], retain: int = DefaultRetainVersions) -> List[LaunchVersion]:
    """
    All versions older than the `retain` most recent ones.
    A retain count of zero or less falls back to the default.
    """
    retain = retain if retain > 0 else DefaultRetainVersions
    ordered = sort_versions(versions)
    if len(ordered) <= retain:
        return []
    return ordered[: len(ordered) - retain]


def find_version(versions: Sequence[LaunchVersion], number: Optional[int]) -> Optional[LaunchVersion]:
    if number is None:
        return None
    for version in versions:
        if version.version_number == number:
            return version
    return None
