"""Entry point for the edit battle."""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from loguru import logger

from battle.comparator import Comparator, ComparatorConfig
from battle.sampler import Contender, Sampler, SamplerConfig, Side
from battle.stream import open_source
from publisher.mqtt_client import MQTTConfig, MQTTPublisher, count_payload, winner_payload


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Which Wikipedia is editing more than usual?")
    parser.add_argument(
        "--config",
        default="config/config.yaml",
        help="Path to configuration file (default: config/config.yaml)",
    )
    parser.add_argument("--left", help="Language code for the left side")
    parser.add_argument("--right", help="Language code for the right side")
    parser.add_argument(
        "--duration",
        type=float,
        help="Stop after this many seconds (default: run until interrupted)",
    )
    parser.add_argument(
        "--list-languages",
        action="store_true",
        help="List configured languages and exit",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Run without publishing MQTT events",
    )
    return parser.parse_args(argv)


def load_config(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")
    with path.open("r", encoding="utf-8") as handle:
        config = yaml.safe_load(handle)
    if not isinstance(config, dict):
        raise ValueError("Configuration file must define a mapping")
    return config


def setup_logging(log_config: Dict[str, Any]) -> None:
    level = log_config.get("level", "INFO")
    logger.remove()
    logger.add(sys.stderr, level=level)

    file_path = log_config.get("file_path")
    if not file_path:
        return
    file_path = Path(file_path)
    try:
        file_path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            str(file_path),
            level=level,
            rotation="5 MB",
            retention=5,
            enqueue=True,
            backtrace=False,
            diagnose=False,
        )
    except PermissionError as exc:
        logger.warning(
            "Unable to write log file at {} ({}). Continuing with console logging only.",
            file_path,
            exc,
        )


def language_catalog(config: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
    """Index the configured languages by language code."""
    catalog: Dict[str, Dict[str, Any]] = {}
    for entry in config.get("languages", []) or []:
        lang = str(entry.get("lang", "")).strip()
        if not lang or not entry.get("ws_url"):
            raise ValueError(f"Language entry needs 'lang' and 'ws_url': {entry}")
        catalog[lang] = entry
    return catalog


def list_languages(catalog: Dict[str, Dict[str, Any]]) -> None:
    if not catalog:
        print("No languages configured.")
        return
    print("Configured languages:")
    for lang, entry in catalog.items():
        print(f"[{lang}] {entry.get('name', lang)} - {entry['ws_url']}")


def build_contender(catalog: Dict[str, Dict[str, Any]], lang: str, side: Side) -> Contender:
    entry = catalog.get(lang)
    if entry is None:
        raise ValueError(f"Unknown language '{lang}' (configured: {', '.join(catalog) or 'none'})")
    return Contender(
        country_code=str(entry.get("country_code", lang)),
        lang=lang,
        name=str(entry.get("name", lang)),
        side=side,
        ws_url=str(entry["ws_url"]),
    )


def build_mqtt(config: Dict[str, Any], dry_run: bool) -> Optional[MQTTPublisher]:
    mqtt_cfg = config.get("mqtt")
    if dry_run or not mqtt_cfg:
        logger.info("MQTT publishing is disabled")
        return None

    publisher = MQTTPublisher(
        MQTTConfig(
            host=mqtt_cfg.get("host", "localhost"),
            port=int(mqtt_cfg.get("port", 1883)),
            topic_prefix=mqtt_cfg.get("topic_prefix", "home/editbattle"),
            username=(mqtt_cfg.get("username") or None),
            password=(mqtt_cfg.get("password") or None),
        ),
        client_id=mqtt_cfg.get("client_id"),
    )
    publisher.start()
    return publisher


class BattleConsole:
    """Presentation state for a single battle: latest counts and the winning side."""

    def __init__(
        self,
        left: Contender,
        right: Contender,
        publisher: Optional[MQTTPublisher] = None,
    ) -> None:
        self.contenders = {Side.LEFT: left, Side.RIGHT: right}
        self.counts: Dict[Side, Optional[int]] = {Side.LEFT: None, Side.RIGHT: None}
        self.winning_side: Optional[Side] = None
        self.publisher = publisher

    def on_new_count(self, count: int, side: Side) -> None:
        self.counts[side] = count
        contender = self.contenders[side]
        logger.info("{:>5} | {}: {} edits/s", side.value, contender.name, count)
        if self.publisher:
            self.publisher.publish("count", count_payload(count, side.value, contender.lang))

    def on_winner_changed(self, winner: Sampler) -> None:
        self.winning_side = winner.side
        logger.info("{} is winning on the {}", winner.contender.name, winner.side.value)
        if self.publisher:
            self.publisher.publish(
                "winner",
                winner_payload(
                    winner.side.value,
                    winner.contender.lang,
                    winner.contender.name,
                    winner.aggregate_score,
                ),
                retain=True,
            )


def build_battle(
    config: Dict[str, Any],
    left: Contender,
    right: Contender,
    console: BattleConsole,
) -> Comparator:
    battle_cfg = config.get("battle", {}) or {}
    sampler_config = SamplerConfig(
        window_seconds=float(battle_cfg.get("window_seconds", 1.0)),
        max_scores=int(battle_cfg.get("max_scores", 20)),
    )
    return Comparator(
        Sampler(left, open_source(left.ws_url), sampler_config),
        Sampler(right, open_source(right.ws_url), sampler_config),
        console.on_new_count,
        console.on_winner_changed,
        ComparatorConfig(right_wins_ties=bool(battle_cfg.get("right_wins_ties", False))),
    )


async def run_battle(comparator: Comparator, duration: Optional[float] = None) -> None:
    comparator.start()
    try:
        if duration is not None:
            await asyncio.sleep(duration)
        else:
            await asyncio.Event().wait()
    finally:
        comparator.stop()


def main(argv: Optional[list[str]] = None) -> None:
    args = parse_args(argv)
    config = load_config(Path(args.config))
    catalog = language_catalog(config)

    if args.list_languages:
        list_languages(catalog)
        return

    setup_logging(config.get("logging", {}) or {})

    battle_cfg = config.get("battle", {}) or {}
    left = build_contender(catalog, args.left or battle_cfg.get("left", ""), Side.LEFT)
    right = build_contender(catalog, args.right or battle_cfg.get("right", ""), Side.RIGHT)
    duration = args.duration if args.duration is not None else battle_cfg.get("duration_seconds")

    mqtt_publisher = build_mqtt(config, args.dry_run)
    console = BattleConsole(left, right, mqtt_publisher)
    comparator = build_battle(config, left, right, console)

    logger.info("Battle: {} vs {}", left.name, right.name)
    try:
        asyncio.run(run_battle(comparator, None if duration is None else float(duration)))
    except KeyboardInterrupt:
        logger.info("Interrupted by user, shutting down")
    finally:
        if mqtt_publisher:
            mqtt_publisher.stop()


if __name__ == "__main__":
    main()
