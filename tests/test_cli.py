"""Tests for argument parsing and exit codes that need no network."""

import pytest

from kdapi import cli
from kdapi.config import DEFAULT_BATCH_DELAY_MS, DEFAULT_BATCH_SIZE, DEFAULT_SAMPLE_SIZE
from kdapi.models import Category


def test_scrape_defaults():
    args = cli.build_parser().parse_args(["scrape"])
    options = cli.options_from_args(args)

    assert options.debug is False
    assert options.sample_size == DEFAULT_SAMPLE_SIZE
    assert options.delay_ms == DEFAULT_BATCH_DELAY_MS
    assert options.batch_size == DEFAULT_BATCH_SIZE
    assert options.use_cache is True
    assert options.force_refresh is False
    assert options.categories is None
    assert options.delay_seconds == DEFAULT_BATCH_DELAY_MS / 1000


def test_scrape_flags():
    args = cli.build_parser().parse_args([
        "scrape", "-d", "-s", "3", "--delay", "500", "--batch-size", "2",
        "--no-cache", "--force", "--category", "girlGroups", "--category", "coedGroups",
    ])
    options = cli.options_from_args(args)

    assert options.debug is True
    assert options.sample_size == 3
    assert options.delay_ms == 500
    assert options.batch_size == 2
    assert options.use_cache is False
    assert options.force_refresh is True
    assert options.categories == [Category.GIRL_GROUPS, Category.COED_GROUPS]


def test_retry_failed_parses_common_options(tmp_path):
    args = cli.build_parser().parse_args(["retry-failed", "--data-dir", str(tmp_path), "--no-dashboard"])
    options = cli.options_from_args(args)

    assert args.command == "retry-failed"
    assert args.no_dashboard is True
    assert options.debug is False


def test_command_is_required():
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args([])


def test_invalid_batch_size_exits_with_configuration_code(tmp_path):
    code = cli.main([
        "scrape", "--batch-size", "0",
        "--data-dir", str(tmp_path / "data"), "--cache-dir", str(tmp_path / "cache"),
    ])
    assert code == cli.EXIT_CONFIG
    assert not (tmp_path / "data").exists()


def test_negative_delay_exits_with_configuration_code(tmp_path):
    code = cli.main([
        "scrape", "--delay", "-5",
        "--data-dir", str(tmp_path / "data"), "--cache-dir", str(tmp_path / "cache"),
    ])
    assert code == cli.EXIT_CONFIG
