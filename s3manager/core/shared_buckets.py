"""
Extra buckets shared with this account.

ListBuckets only returns buckets the credentials own. Buckets owned by other
accounts but readable by ours can be listed in a YAML file stored in S3:

    - team-a-artifacts
    - partner-exports

SHARED_BUCKETS_PATH points at that file as "bucket/key".
"""

import logging

import yaml

from .errors import SharedBucketsError, StorageError
from .models import Bucket

logger = logging.getLogger(__name__)

ERROR_PREFIX = "error getting shared buckets object"


def split_shared_buckets_path(path: str) -> tuple[str, str]:
    """Split "bucket/some/key.yaml" into ("bucket", "some/key.yaml")."""
    bucket, sep, key = path.partition("/")
    if not sep or not bucket or not key:
        raise SharedBucketsError(f"{ERROR_PREFIX}: Shared path is not valid")
    return bucket, key


def parse_shared_buckets(data: bytes) -> list[str]:
    """
    Parse the YAML list of bucket names.

    An empty document means no extra buckets. Anything that is not a flat
    list of strings is rejected.
    """
    try:
        names = yaml.safe_load(data)
    except yaml.YAMLError as e:
        raise SharedBucketsError(f"{ERROR_PREFIX}: {e}")

    if names is None:
        return []
    if not isinstance(names, list) or not all(isinstance(n, str) for n in names):
        raise SharedBucketsError(f"{ERROR_PREFIX}: expected a list of bucket names")
    return names


async def load_shared_buckets(storage, path: str) -> list[Bucket]:
    """Fetch and parse the shared buckets file through the storage client."""
    bucket_name, key = split_shared_buckets_path(path)

    try:
        data = await storage.read_object(bucket_name, key)
    except SharedBucketsError:
        raise
    except StorageError as e:
        raise SharedBucketsError(f"{ERROR_PREFIX}: {e}", code=e.code)

    names = parse_shared_buckets(data)
    logger.debug(
        "Loaded shared buckets",
        extra={"path": path, "count": len(names)}
    )
    return [Bucket(name=name) for name in names]
