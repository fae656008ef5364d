"""Catalog feed helpers."""

from __future__ import annotations

import pathlib

import yaml

from feedwire.catalog.models import FeedConfig

FEEDS_PATH = pathlib.Path(__file__).with_name("feeds.yml")


def load_feed_configs(path: pathlib.Path = FEEDS_PATH) -> list[FeedConfig]:
    data = yaml.safe_load(path.read_text()) or []
    return [FeedConfig(**item) for item in data]
