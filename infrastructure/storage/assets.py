"""Static asset bucket: declaration and Pulumi rendering.

A public bucket serves reads through its bucket policy only. Object ACLs are
always blocked in that case, so ``public_read`` cannot be requested without
``block_acls_only``.
"""
import json
import re
import warnings
from dataclasses import dataclass
from typing import Optional

import pulumi_aws as aws
from loguru import logger
from pulumi import ComponentResource, ResourceOptions

from infrastructure.errors import ConfigurationError, ConfigurationWarning, PolicyConflictError

_BUCKET_NAME = re.compile(r"^[a-z0-9][a-z0-9.-]{1,61}[a-z0-9]$")


def _check_public_read(public_read: bool, block_acls_only: bool) -> None:
    if public_read and not block_acls_only:
        raise PolicyConflictError(
            "public_read grants access through the bucket policy and requires "
            "block_acls_only=True so object ACLs cannot widen it"
        )


@dataclass(frozen=True)
class AssetStoreOptions:
    versioned: bool = True
    public_read: bool = False
    destroy_on_teardown: bool = False
    auto_purge_on_destroy: bool = False
    block_acls_only: bool = False
    # expire old object versions after this many days, versioned buckets only
    noncurrent_version_expiration_days: Optional[int] = None

    def __post_init__(self):
        _check_public_read(self.public_read, self.block_acls_only)

    @classmethod
    def public_assets(cls, **kwargs) -> "AssetStoreOptions":
        """Options for a publicly readable static-asset bucket."""
        return cls(public_read=True, block_acls_only=True, **kwargs)


@dataclass(frozen=True)
class AssetStoreHandle:
    name: str
    region: str
    versioned: bool
    public_read: bool
    block_acls_only: bool
    destroy_on_teardown: bool
    auto_purge_on_destroy: bool
    noncurrent_version_expiration_days: Optional[int] = None

    @property
    def arn(self) -> str:
        return f"arn:aws:s3:::{self.name}"

    @property
    def objects_arn(self) -> str:
        return f"{self.arn}/*"

    @property
    def base_url(self) -> str:
        return f"https://{self.name}.s3.{self.region}.amazonaws.com"

    @property
    def public_access_block(self) -> dict:
        return {
            "block_public_acls": True,
            "ignore_public_acls": True,
            "block_public_policy": not self.block_acls_only,
            "restrict_public_buckets": not self.block_acls_only,
        }

    def bucket_policy(self) -> Optional[dict]:
        if not self.public_read:
            return None
        return {
            "Version": "2012-10-17",
            "Statement": [
                {
                    "Sid": "PublicReadGetObject",
                    "Effect": "Allow",
                    "Principal": {"AWS": "*"},
                    "Action": "s3:GetObject",
                    "Resource": self.objects_arn,
                }
            ],
        }


def build_asset_store(name: str, options: Optional[AssetStoreOptions] = None, region: str = "us-east-1") -> AssetStoreHandle:
    options = options or AssetStoreOptions()
    if not isinstance(name, str) or not _BUCKET_NAME.match(name) or ".." in name:
        raise ConfigurationError(f"Invalid bucket name {name!r}")
    _check_public_read(options.public_read, options.block_acls_only)

    expiration = options.noncurrent_version_expiration_days
    if expiration is not None:
        if not options.versioned:
            raise ConfigurationError("noncurrent_version_expiration_days needs a versioned bucket")
        if isinstance(expiration, bool) or not isinstance(expiration, int) or expiration < 1:
            raise ConfigurationError(f"noncurrent_version_expiration_days must be >= 1, got {expiration!r}")

    auto_purge = options.auto_purge_on_destroy
    if auto_purge and not options.destroy_on_teardown:
        message = f"auto_purge_on_destroy ignored for bucket {name}: destroy_on_teardown is off"
        logger.warning(message)
        warnings.warn(message, ConfigurationWarning, stacklevel=2)
        auto_purge = False

    logger.debug(f"Declared asset bucket {name} (public_read={options.public_read}, versioned={options.versioned})")

    return AssetStoreHandle(
        name=name,
        region=region,
        versioned=options.versioned,
        public_read=options.public_read,
        block_acls_only=options.block_acls_only,
        destroy_on_teardown=options.destroy_on_teardown,
        auto_purge_on_destroy=auto_purge,
        noncurrent_version_expiration_days=expiration,
    )


class AssetBucketComponent(ComponentResource):
    def __init__(self, name: str, store: AssetStoreHandle, opts: ResourceOptions = None):
        super().__init__("custom:storage:AssetBucket", name, None, opts)

        self.bucket = aws.s3.Bucket(
            f"{name}-assetsBucket",
            bucket=store.name,
            force_destroy=store.auto_purge_on_destroy,
            opts=ResourceOptions(parent=self, retain_on_delete=not store.destroy_on_teardown),
        )

        if store.versioned:
            self.versioning = aws.s3.BucketVersioning(
                f"{name}-assetsBucketVersioning",
                bucket=self.bucket.id,
                versioning_configuration={"status": "Enabled"},
                opts=ResourceOptions(parent=self),
            )

        if store.noncurrent_version_expiration_days:
            aws.s3.BucketLifecycleConfiguration(
                f"{name}-assetsBucketLifecycle",
                bucket=self.bucket.id,
                rules=[
                    {
                        "id": "expire-noncurrent-versions",
                        "status": "Enabled",
                        "filter": {},
                        "noncurrent_version_expiration": {
                            "noncurrent_days": store.noncurrent_version_expiration_days,
                        },
                    }
                ],
                opts=ResourceOptions(parent=self),
            )

        # ACLs are disabled outright, the bucket owner owns every object
        self.ownership_controls = aws.s3.BucketOwnershipControls(
            f"{name}-assetsBucketOwnership",
            bucket=self.bucket.id,
            rule={"object_ownership": "BucketOwnerEnforced"},
            opts=ResourceOptions(parent=self),
        )

        self.public_access_block = aws.s3.BucketPublicAccessBlock(
            f"{name}-assetsBucketPublicAccessBlock",
            bucket=self.bucket.id,
            opts=ResourceOptions(parent=self),
            **store.public_access_block,
        )

        policy = store.bucket_policy()
        if policy is not None:
            self.bucket_policy = aws.s3.BucketPolicy(
                f"{name}-assetsBucketPolicy",
                bucket=self.bucket.id,
                policy=json.dumps(policy),
                opts=ResourceOptions(parent=self, depends_on=[self.public_access_block]),
            )

        self.register_outputs({
            "bucket_name": self.bucket.bucket,
            "bucket_arn": self.bucket.arn,
        })
