# Copyright Red Hat
#
# stordiff/client/s3.py - Storage differ S3 object storage client
#
# This file is part of the stordiff project.
#
# SPDX-License-Identifier: Apache-2.0
"""
S3 compatible object storage client.

Two URL forms are accepted:

* ``s3://bucket/key``: Amazon S3 using the default endpoint and the
  standard boto3 credential chain.
* ``http[s]://host[:port]/bucket/key``: any S3 compatible endpoint, using
  credentials from the ``[Host <host>]`` configuration section if present.

Object storage has no real directories: a key prefix ending in "/" that has
at least one object beneath it is reported as a directory.
"""
from typing import Any, Dict, Iterator, Optional, Set, Tuple
import logging

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from stordiff import (
    StordiffArgumentError,
    StordiffClientError,
    StordiffExistsError,
    StordiffNotFoundError,
    StordiffPermissionError,
    STORDIFF_SUBSYSTEM_CLIENT,
)

from ._client import EntryAttributes, EntryType, StorageClient
from ._url import REMOTE_SEPARATOR

_log = logging.getLogger(__name__)

_NOT_FOUND_CODES = ("404", "NoSuchKey", "NoSuchBucket", "NotFound")
_DENIED_CODES = ("403", "AccessDenied", "Forbidden", "AllAccessDisabled")
_EXISTS_CODES = ("BucketAlreadyOwnedByYou", "BucketAlreadyExists")

#: Region that must not be given as a LocationConstraint
_DEFAULT_REGION = "us-east-1"


def _client_error(err: Exception, what: str) -> Exception:
    """
    Map a botocore exception raised while accessing ``what`` to a stordiff
    exception.
    """
    if isinstance(err, ClientError):
        code = str(err.response.get("Error", {}).get("Code", ""))
        if code in _NOT_FOUND_CODES:
            return StordiffNotFoundError(f"Object or bucket not found: '{what}'")
        if code in _DENIED_CODES:
            return StordiffPermissionError(f"Access denied: '{what}'")
        if code in _EXISTS_CODES:
            return StordiffExistsError(f"Bucket '{what}' already exists")
        return StordiffClientError(f"Error accessing '{what}': {err}")
    return StordiffClientError(f"Error accessing '{what}': {err}")


class S3Client(StorageClient):
    """
    Storage client for S3 compatible object storage.
    """

    name = "s3"
    version = "0.1.0"
    schemes = ("s3", "http", "https")

    def __init__(self, url, config=None):
        super().__init__(url, config=config)
        self._s3 = None
        self.bucket, self.key = self._split_url()

    def _log_debug(self, msg, *args):
        self.logger.debug(msg, *args, extra={"subsystem": STORDIFF_SUBSYSTEM_CLIENT})

    def _split_url(self) -> Tuple[str, str]:
        """
        Return the ``(bucket, key)`` pair addressed by this client's URL.
        The bucket is empty for an endpoint root URL.
        """
        path = self.url.path.lstrip(REMOTE_SEPARATOR)
        if self.url.scheme == "s3":
            return self.url.host, path
        bucket, _, key = path.partition(REMOTE_SEPARATOR)
        return bucket, key

    @property
    def endpoint_url(self) -> Optional[str]:
        """
        The endpoint URL to pass to boto3, or ``None`` for the default.
        """
        if self.url.scheme == "s3":
            return None
        return f"{self.url.scheme}://{self.url.host}"

    @property
    def s3(self):
        """
        The boto3 S3 client, created on first use.
        """
        if self._s3 is None:
            kwargs: Dict[str, Any] = {}
            if self.endpoint_url:
                kwargs["endpoint_url"] = self.endpoint_url
            host_cfg = self.config.host_config(self.url.host) if self.config else None
            if host_cfg is not None:
                if host_cfg.access_key:
                    kwargs["aws_access_key_id"] = host_cfg.access_key
                if host_cfg.secret_key:
                    kwargs["aws_secret_access_key"] = host_cfg.secret_key
                if host_cfg.region:
                    kwargs["region_name"] = host_cfg.region
            self._log_debug(
                "Creating S3 client for %s (endpoint=%s)", self.url, self.endpoint_url
            )
            self._s3 = boto3.client("s3", **kwargs)
        return self._s3

    @property
    def prefix(self) -> str:
        """
        The key prefix for listings beneath this client's URL.
        """
        if not self.key or self.key.endswith(REMOTE_SEPARATOR):
            return self.key
        return self.key + REMOTE_SEPARATOR

    def _is_prefix(self) -> bool:
        resp = self.s3.list_objects_v2(Bucket=self.bucket, Prefix=self.prefix, MaxKeys=1)
        return resp.get("KeyCount", len(resp.get("Contents", []))) > 0

    def stat(self) -> EntryAttributes:
        what = str(self.url)
        try:
            if not self.bucket:
                self.s3.list_buckets()
                return EntryAttributes("", 0, EntryType.DIRECTORY)
            if not self.key:
                self.s3.head_bucket(Bucket=self.bucket)
                return EntryAttributes(self.bucket, 0, EntryType.DIRECTORY)
            if not self.key.endswith(REMOTE_SEPARATOR):
                try:
                    resp = self.s3.head_object(Bucket=self.bucket, Key=self.key)
                    return EntryAttributes(
                        self.url.basename,
                        int(resp.get("ContentLength", 0)),
                        EntryType.REGULAR,
                    )
                except ClientError as err:
                    if not isinstance(
                        _client_error(err, what), StordiffNotFoundError
                    ):
                        raise
            if self._is_prefix():
                return EntryAttributes(self.url.basename, 0, EntryType.DIRECTORY)
        except (BotoCoreError, ClientError) as err:
            raise _client_error(err, what) from err
        raise StordiffNotFoundError(f"Object or bucket not found: '{what}'")

    def _list_buckets(self, recursive: bool) -> Iterator[EntryAttributes]:
        resp = self.s3.list_buckets()
        for bucket in resp.get("Buckets", []):
            name = bucket["Name"]
            yield EntryAttributes(name, 0, EntryType.DIRECTORY)
            if recursive:
                child = S3Client(self.url.join(name), config=self.config)
                child._s3 = self.s3  # pylint: disable=protected-access
                for entry in child.list(recursive=True):
                    yield EntryAttributes(
                        name + REMOTE_SEPARATOR + entry.name,
                        entry.size,
                        entry.entry_type,
                    )

    def _list_objects(self, recursive: bool) -> Iterator[EntryAttributes]:
        prefix = self.prefix
        params = {"Bucket": self.bucket, "Prefix": prefix}
        if not recursive:
            params["Delimiter"] = REMOTE_SEPARATOR

        seen_dirs: Set[str] = set()

        def _dirs_for(name: str) -> Iterator[EntryAttributes]:
            # Synthesise each missing ancestor "directory" of name once.
            parts = name.split(REMOTE_SEPARATOR)[:-1]
            for i in range(1, len(parts) + 1):
                dir_name = REMOTE_SEPARATOR.join(parts[:i])
                if dir_name and dir_name not in seen_dirs:
                    seen_dirs.add(dir_name)
                    yield EntryAttributes(dir_name, 0, EntryType.DIRECTORY)

        paginator = self.s3.get_paginator("list_objects_v2")
        for page in paginator.paginate(**params):
            for common in page.get("CommonPrefixes", []):
                name = common["Prefix"][len(prefix) :].rstrip(REMOTE_SEPARATOR)
                if name and name not in seen_dirs:
                    seen_dirs.add(name)
                    yield EntryAttributes(name, 0, EntryType.DIRECTORY)
            for obj in page.get("Contents", []):
                name = obj["Key"][len(prefix) :]
                if not name:
                    # The directory marker object for prefix itself.
                    continue
                if recursive:
                    yield from _dirs_for(name)
                if name.endswith(REMOTE_SEPARATOR):
                    dir_name = name.rstrip(REMOTE_SEPARATOR)
                    if dir_name not in seen_dirs:
                        seen_dirs.add(dir_name)
                        yield EntryAttributes(dir_name, 0, EntryType.DIRECTORY)
                    continue
                yield EntryAttributes(name, int(obj.get("Size", 0)), EntryType.REGULAR)

    def list(self, recursive: bool = False) -> Iterator[EntryAttributes]:
        self._log_debug("Listing '%s' (recursive=%s)", self.url, recursive)
        try:
            if not self.bucket:
                yield from self._list_buckets(recursive)
            else:
                yield from self._list_objects(recursive)
        except (BotoCoreError, ClientError) as err:
            raise _client_error(err, str(self.url)) from err

    def make_bucket(self):
        if not self.bucket:
            raise StordiffArgumentError(f"No bucket name in '{self.url}'")
        if self.key.strip(REMOTE_SEPARATOR):
            raise StordiffArgumentError(
                f"Cannot create bucket for '{self.url}': URL has an object key"
            )
        kwargs: Dict[str, Any] = {"Bucket": self.bucket}
        region = self.s3.meta.region_name
        if region and region != _DEFAULT_REGION:
            kwargs["CreateBucketConfiguration"] = {"LocationConstraint": region}
        try:
            self.s3.create_bucket(**kwargs)
        except (BotoCoreError, ClientError) as err:
            mapped = _client_error(err, self.bucket)
            raise mapped from err
        self._log_debug("Created bucket '%s'", self.bucket)


__all__ = ["S3Client"]
