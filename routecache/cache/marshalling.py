"""MessagePack marshalling of cached routes and store records."""

from typing import Any

import msgpack
from pydantic import ValidationError

from routecache.cache.models import CacheRecord
from routecache.core.exceptions import MarshallingError
from routecache.core.models import CachedRoutes


def marshal_cached_routes(cached_routes: CachedRoutes) -> bytes:
    """Encode CachedRoutes for storage.

    Raises:
        MarshallingError: If the routes hold values msgpack cannot encode
    """
    try:
        return msgpack.packb(cached_routes.model_dump(mode="json"), use_bin_type=True)
    except (TypeError, ValueError) as e:
        raise MarshallingError(f"Failed to marshal cached routes: {e}") from e


def unmarshal_cached_routes(data: bytes) -> CachedRoutes:
    """Decode CachedRoutes written by marshal_cached_routes.

    Raises:
        MarshallingError: If the payload is corrupt or no longer matches the model
    """
    try:
        routes_dict = msgpack.unpackb(data, raw=False)
        return CachedRoutes.model_validate(routes_dict)
    except (msgpack.UnpackException, ValueError, TypeError, ValidationError) as e:
        raise MarshallingError(f"Failed to unmarshal cached routes: {e}") from e


def marshal_record(record: CacheRecord) -> bytes:
    """Encode a store record (payload stays binary)."""
    record_dict: dict[str, Any] = {
        "key": record.key,
        "payload": record.payload,
        "block_number": record.block_number,
        "protocols": [p.value for p in record.protocols],
        "bucket": record.bucket,
        "expires_at": record.expires_at,
        "created_at": record.created_at,
    }
    return msgpack.packb(record_dict, use_bin_type=True)


def unmarshal_record(data: bytes) -> CacheRecord:
    """Decode a store record written by marshal_record.

    Raises:
        MarshallingError: If the record is corrupt
    """
    try:
        record_dict = msgpack.unpackb(data, raw=False)
        return CacheRecord.model_validate(record_dict)
    except (msgpack.UnpackException, ValueError, TypeError, ValidationError) as e:
        raise MarshallingError(f"Failed to unmarshal cache record: {e}") from e
