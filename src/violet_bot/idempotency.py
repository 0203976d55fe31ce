"""
Simple idempotency guard using S3.

Stores a tiny marker object per processed webhook delivery id, so GitHub
redeliveries do not start a second build.
"""

from __future__ import annotations

from botocore.exceptions import ClientError

from . import aws


def s3_record_if_new(bucket: str, key: str) -> bool:
    """Return True if recorded now (i.e., first time), False if already exists."""
    s3 = aws.client("s3")
    try:
        s3.head_object(Bucket=bucket, Key=key)
        return False
    except ClientError as e:
        if aws.error_code(e) not in ("404", "NoSuchKey", "NotFound"):
            raise
    s3.put_object(Bucket=bucket, Key=key, Body=b"1")
    return True
