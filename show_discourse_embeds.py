#!/usr/bin/env python3
# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Render forum groups and/or a topic list into a standalone HTML page.

Examples:
    show_discourse_embeds.py --config forum.yaml --output /tmp/forum.html
    show_discourse_embeds.py --config forum.yaml --topics --source top --period weekly --max-topics 10
    show_discourse_embeds.py --config forum.yaml --groups --group-list staff,dev-team --tile
    show_discourse_embeds.py --config forum.yaml --clear-cache --debug

Credentials can also come from DISCOURSE_URL / DISCOURSE_API_KEY / DISCOURSE_API_USERNAME.
"""

import argparse
import logging
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml
from markupsafe import Markup

from common import ForumConfig, atomic_write_text, discourse_embeds_cache_dir, load_forum_config
from common_discourse import DiscourseAPIClient
from common_types import TopicSource, TopPeriod
from html_fragments import DiscourseEmbeds
from html_fragments.templating import template_env

_logger = logging.getLogger(__name__)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Render Discourse groups and topic lists into an HTML page")
    p.add_argument("--config", type=Path, default=None, help="Forum config YAML (url, api_key, api_username, ...)")
    p.add_argument("--groups", action="store_true", help="Render the groups fragment")
    p.add_argument("--topics", action="store_true", help="Render the topic list fragment")
    p.add_argument("--group-list", default="", help="Comma-separated group names to show (default: all)")
    p.add_argument(
        "--source",
        choices=[s.value for s in TopicSource],
        default=TopicSource.LATEST.value,
        help="Topic listing (default: latest)",
    )
    p.add_argument(
        "--period",
        choices=[s.value for s in TopPeriod],
        default=TopPeriod.DAILY.value,
        help="Period for --source top (default: daily)",
    )
    p.add_argument("--category", default="", help="Category slug to list topics from")
    p.add_argument("--max-topics", type=int, default=5, help="Maximum topics to show (default: 5)")
    p.add_argument("--tile", action="store_true", help="Use the tile layout")
    p.add_argument("--output", type=Path, default=Path("discourse_embeds.html"), help="Output HTML file path")
    p.add_argument("--clear-cache", action="store_true", help="Drop cached groups/topics before rendering")
    p.add_argument("--debug", action="store_true", help="Debug logging (includes every REST call)")
    return p.parse_args(argv)


def build_sections(embeds: DiscourseEmbeds, args: argparse.Namespace) -> List[Dict[str, Any]]:
    want_groups = args.groups or not args.topics
    want_topics = args.topics or not args.groups

    sections: List[Dict[str, Any]] = []
    if want_groups:
        html = embeds.render_groups({"group_list": args.group_list, "tile": args.tile})
        if html:
            sections.append({"title": "Groups", "html": Markup(html)})
        else:
            _logger.warning("Groups fragment is empty")
    if want_topics:
        html = embeds.render_latest_topics(
            {
                "source": args.source,
                "period": args.period,
                "category": args.category,
                "max_topics": args.max_topics,
                "tile": args.tile,
            }
        )
        if html:
            title = "Top topics" if args.source == TopicSource.TOP.value else "Latest topics"
            sections.append({"title": title, "html": Markup(html)})
        else:
            _logger.warning("Topic list is empty")
    return sections


def render_page(config: ForumConfig, sections: List[Dict[str, Any]]) -> str:
    template = template_env().get_template("page.j2")
    return template.render(
        page_title="Discourse embeds",
        sections=sections,
        forum_url=config.base_url or "",
        generated_time=datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S %Z"),
    )


def log_stats(embeds: DiscourseEmbeds) -> None:
    rest = embeds.api.get_rest_call_stats()
    cache = embeds.api.get_cache_stats()
    _logger.info(
        "REST calls: %d (%d errors, %.3fs) by label: %s",
        rest["total"],
        rest["errors_total"],
        rest["time_total_s"],
        rest["by_label"],
    )
    _logger.info("Cache: %d hits, %d misses, writes: %s", cache["hits_total"], cache["misses_total"], cache["writes"])
    for entry in embeds.api.stats.get_actual_api_call_log():
        _logger.debug("  %3d. %s", entry["seq"], entry["text"])


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="[%(levelname)s] %(message)s",
    )

    try:
        config = load_forum_config(args.config)
    except (OSError, ValueError, yaml.YAMLError) as e:
        _logger.error("Could not load forum config: %s", e)
        return 1
    if not config.base_url:
        _logger.error("Forum URL is not configured (set url in --config or DISCOURSE_URL)")
        return 1

    if config.cache_dir is None:
        config = replace(config, cache_dir=discourse_embeds_cache_dir())

    embeds = DiscourseEmbeds(config, api=DiscourseAPIClient(config, debug_rest=args.debug))
    if args.clear_cache:
        embeds.clear_cache()

    sections = build_sections(embeds, args)
    embeds.flush()
    log_stats(embeds)

    if not sections:
        _logger.error("Nothing could be rendered")
        return 1

    atomic_write_text(args.output, render_page(config, sections))
    _logger.info("Wrote: %s", args.output)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
