"""Tests for the storefront command-line entry points."""

import json
from unittest.mock import AsyncMock, patch

import pytest

from storefront import cli
from storefront.core.config import StorefrontConfig, set_config, get_config
from storefront.data.models import CacheInvalidationResult, InvalidationOperations


@pytest.fixture
def use_config():
    previous = get_config()

    def install(config):
        set_config(config)
        return config

    yield install
    set_config(previous)


def test_parser_requires_a_command():
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args([])


def test_invalidate_rejects_unknown_action():
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args(["invalidate", "--entity-id", "p1", "--action", "archive"])


def test_sync_without_database_config_exits_1(use_config, tmp_path):
    use_config(StorefrontConfig(public_dir=str(tmp_path)))
    assert cli.main(["sync"]) == 1


def test_revalidate_without_site_url_exits_1(use_config):
    use_config(StorefrontConfig())
    assert cli.main(["revalidate"]) == 1


def test_revalidate_uses_default_tags(use_config):
    use_config(StorefrontConfig(site_url="https://shop.example.com"))
    with patch.object(cli.RemoteRevalidator, "revalidate_tags", new_callable=AsyncMock) as revalidate:
        assert cli.main(["revalidate"]) == 0
    revalidate.assert_awaited_once_with(cli.DEFAULT_REVALIDATE_TAGS)


def test_revalidate_path_wins(use_config):
    use_config(StorefrontConfig(site_url="https://shop.example.com"))
    with patch.object(cli.RemoteRevalidator, "revalidate_path", new_callable=AsyncMock) as revalidate_path, \
            patch.object(cli.RemoteRevalidator, "revalidate_tags", new_callable=AsyncMock) as revalidate_tags:
        assert cli.main(["revalidate", "--path", "/products", "--tags", "products", "--type", "layout"]) == 0
    revalidate_path.assert_awaited_once_with("/products", "layout")
    revalidate_tags.assert_not_awaited()


@pytest.mark.parametrize("success, code", [(True, 0), (False, 1)])
def test_invalidate_exit_code_follows_result(use_config, capsys, success, code):
    use_config(StorefrontConfig(site_url="https://shop.example.com"))
    result = CacheInvalidationResult(
        success=success, operations=InvalidationOperations(revalidation=success)
    )
    with patch.object(cli.CacheInvalidator, "on_entity_mutated", new_callable=AsyncMock, return_value=result):
        assert cli.main(["invalidate", "--entity-id", "p1", "--action", "update"]) == code
    printed = json.loads(capsys.readouterr().out)
    assert printed["success"] is success
