"""Unit tests for infrastructure/storage/assets.py."""

import pytest

from infrastructure.errors import ConfigurationError, ConfigurationWarning, PolicyConflictError
from infrastructure.storage.assets import AssetStoreOptions, build_asset_store


# ---------------------------------------------------------------------------
# public read / ACL consistency
# ---------------------------------------------------------------------------


def test_public_read_without_acl_block_is_rejected() -> None:
    with pytest.raises(PolicyConflictError):
        build_asset_store("assets", AssetStoreOptions(public_read=True, block_acls_only=False))


def test_public_read_with_acl_block_succeeds() -> None:
    store = build_asset_store("assets", AssetStoreOptions(public_read=True, block_acls_only=True))

    policy = store.bucket_policy()
    assert policy["Statement"][0]["Action"] == "s3:GetObject"
    assert policy["Statement"][0]["Resource"] == "arn:aws:s3:::assets/*"
    assert store.public_access_block == {
        "block_public_acls": True,
        "ignore_public_acls": True,
        "block_public_policy": False,
        "restrict_public_buckets": False,
    }


def test_public_assets_shortcut() -> None:
    options = AssetStoreOptions.public_assets(destroy_on_teardown=True)
    assert options.public_read and options.block_acls_only and options.destroy_on_teardown


def test_private_bucket_blocks_everything() -> None:
    store = build_asset_store("assets")

    assert store.bucket_policy() is None
    assert all(store.public_access_block.values())


# ---------------------------------------------------------------------------
# identifiers
# ---------------------------------------------------------------------------


def test_identifiers() -> None:
    store = build_asset_store("web-assets", region="eu-west-2")

    assert store.arn == "arn:aws:s3:::web-assets"
    assert store.objects_arn == "arn:aws:s3:::web-assets/*"
    assert store.base_url == "https://web-assets.s3.eu-west-2.amazonaws.com"


@pytest.mark.parametrize("name", ["", "ab", "Assets", "-assets", "assets-", "a..b", "a" * 64, None])
def test_invalid_bucket_names(name) -> None:
    with pytest.raises(ConfigurationError, match="Invalid bucket name"):
        build_asset_store(name)


# ---------------------------------------------------------------------------
# teardown behaviour
# ---------------------------------------------------------------------------


def test_auto_purge_needs_destroy_on_teardown() -> None:
    with pytest.warns(ConfigurationWarning, match="auto_purge_on_destroy ignored"):
        store = build_asset_store("assets", AssetStoreOptions(auto_purge_on_destroy=True))

    assert store.auto_purge_on_destroy is False
    assert store.destroy_on_teardown is False


def test_auto_purge_honoured_with_destroy_on_teardown() -> None:
    store = build_asset_store(
        "assets",
        AssetStoreOptions(destroy_on_teardown=True, auto_purge_on_destroy=True),
    )
    assert store.auto_purge_on_destroy is True


def test_noncurrent_version_expiration_needs_versioning() -> None:
    with pytest.raises(ConfigurationError, match="versioned"):
        build_asset_store(
            "assets",
            AssetStoreOptions(versioned=False, noncurrent_version_expiration_days=30),
        )


def test_noncurrent_version_expiration_must_be_positive() -> None:
    with pytest.raises(ConfigurationError, match=">= 1"):
        build_asset_store("assets", AssetStoreOptions(noncurrent_version_expiration_days=0))
