"""Bucket and object name validation for S3Cloud API.

Names follow the S3 bucket naming rules and the same rules apply to object
keys, which keeps every key a single safe path segment:

- 3 to 63 characters
- lowercase letters, digits, dots and hyphens only
- not formatted as an IPv4 address
- no leading or trailing dot or hyphen
- no consecutive dots or hyphens
"""

from __future__ import annotations

import re
from typing import Annotated

from fastapi import Depends

from s3cloud.api.errors import ApiHttpError

MIN_NAME_LENGTH = 3
MAX_NAME_LENGTH = 63

_CHARACTERS = re.compile(r"[a-z0-9.-]+")
_IPV4 = re.compile(
    r"^(25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)\.(25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)"
    r"\.(25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)\.(25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)$"
)
_EDGE_DOT_HYPHEN = re.compile(r"^[.-]|[.-]$")
_CONSECUTIVE_DOT_HYPHEN = re.compile(r"\.\.|--")


def name_violation(name: str) -> str | None:
    """Return why a bucket name or object key is invalid, or None if it is valid."""
    if len(name) < MIN_NAME_LENGTH:
        return f"Name is too short, must be at least {MIN_NAME_LENGTH} characters"
    if len(name) > MAX_NAME_LENGTH:
        return f"Name is too long, must be at most {MAX_NAME_LENGTH} characters"
    if not _CHARACTERS.fullmatch(name):
        return "Name may only contain lowercase letters, digits, dots and hyphens"
    if _IPV4.match(name):
        return "Name must not be formatted as an IP address"
    if _EDGE_DOT_HYPHEN.search(name):
        return "Name must not start or end with a dot or hyphen"
    if _CONSECUTIVE_DOT_HYPHEN.search(name):
        return "Name must not contain consecutive dots or hyphens"
    return None


def is_valid_name(name: str) -> bool:
    return name_violation(name) is None


def validate_bucket_name(bucket: str) -> str:
    """Path dependency rejecting invalid bucket names with 400 InvalidBucketName."""
    violation = name_violation(bucket)
    if violation is not None:
        raise ApiHttpError(400, "InvalidBucketName", violation)
    return bucket


def validate_object_key(key: str) -> str:
    """Path dependency rejecting invalid object keys with 400 InvalidObjectName."""
    violation = name_violation(key)
    if violation is not None:
        raise ApiHttpError(400, "InvalidObjectName", violation)
    return key


BucketName = Annotated[str, Depends(validate_bucket_name)]
ObjectKey = Annotated[str, Depends(validate_object_key)]
