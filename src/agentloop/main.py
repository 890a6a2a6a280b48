"""Entry point: parses CLI arguments, loads config, boots the REPL."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

_DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful assistant that answers questions by reasoning step by step "
    "and calling tools when they help. When you have enough information, answer "
    "the user directly without calling more tools."
)


def _setup_logging(verbose: bool) -> None:
    """Configure root logger.

    Args:
        verbose: If True, set level to DEBUG; otherwise WARNING.
    """
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )


def main() -> None:
    """CLI entry point for the agent."""
    parser = argparse.ArgumentParser(
        prog="agentloop",
        description="Bounded ReAct agent: reason, call tools, answer.",
    )
    parser.add_argument(
        "--config",
        metavar="PATH",
        help="Path to a TOML config file (overrides default.toml).",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging.",
    )
    args = parser.parse_args()

    _setup_logging(args.verbose)

    # Lazy imports so startup is fast when --help is used.
    from agentloop.config import load_config
    from agentloop.providers import get_provider
    from agentloop.repl import run_repl

    config_path = Path(args.config) if args.config else None

    try:
        config = load_config(config_path=config_path)
    except (ValueError, FileNotFoundError) as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        sys.exit(1)

    if not config.system_prompt:
        config.system_prompt = _DEFAULT_SYSTEM_PROMPT

    try:
        provider = get_provider(config)
    except ValueError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        sys.exit(1)

    asyncio.run(run_repl(config=config, provider=provider))


if __name__ == "__main__":
    main()
