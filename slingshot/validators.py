"""Client-side checks mirroring the server's profile rules."""
import re
from typing import Optional

from .models import AllowedFileTypes, UploadFile


TYPE_NOT_ALLOWED = "File type not allowed"
SIZE_TOO_LARGE = "File size too large"


def _match_wildcard(pattern: str, value: str) -> bool:
    regex = "^" + ".*".join(re.escape(part) for part in pattern.split("*")) + "$"
    return re.match(regex, value) is not None


def check_file_type(file_type: str, allowed: AllowedFileTypes) -> bool:
    """
    Check a MIME type against the allowed types.

    `allowed` may be a wildcard string ("image/*"), a list of exact
    types, or a compiled pattern. None allows everything.
    """
    if allowed is None:
        return True
    if isinstance(allowed, re.Pattern):
        return allowed.search(file_type) is not None
    if isinstance(allowed, str):
        return _match_wildcard(allowed, file_type)
    return file_type in allowed


def check_file_size(size: int, max_size: Optional[int]) -> bool:
    if not max_size:
        return True
    return size <= max_size


def validate_file(
    file: UploadFile,
    allowed: AllowedFileTypes = None,
    max_size: Optional[int] = None,
) -> Optional[str]:
    """Return the rejection message for `file`, or None when it passes."""
    if not check_file_type(file.type, allowed):
        return TYPE_NOT_ALLOWED
    if not check_file_size(file.size, max_size):
        return SIZE_TOO_LARGE
    return None
