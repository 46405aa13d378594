"""CLI entry point for chat-bridge.

Thin terminal front end over the same session and model directory the
embedding application uses.

Entry point:
    chat-bridge providers
    chat-bridge models --provider <name> [--json]
    chat-bridge chat --provider <name> [--model <id>] [--image <path>] PROMPT
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from chat_bridge.config import (
    Provider,
    Settings,
    available_providers,
    build_connection_config,
    load_settings_from_env,
)
from chat_bridge.core import list_models
from chat_bridge.errors import ConfigError
from chat_bridge.history import InMemoryConversationStore
from chat_bridge.session import GenerationSession, OutcomeStatus

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────────────
# ARGUMENT PARSING
# ─────────────────────────────────────────────────────────────────────


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chat-bridge",
        description="Chat with Ollama, LM Studio, Claude or OpenAI from the terminal.",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable debug logging"
    )
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("providers", help="List enabled providers")

    provider_choices = [p.value for p in Provider]

    # models
    models_p = sub.add_parser("models", help="List models offered by a provider")
    models_p.add_argument("--provider", required=True, choices=provider_choices)
    models_p.add_argument(
        "--json", action="store_true", dest="json_output", help="JSON output"
    )

    # chat
    chat_p = sub.add_parser("chat", help="Send one prompt and stream the reply")
    chat_p.add_argument("--provider", required=True, choices=provider_choices)
    chat_p.add_argument("--model", default=None, help="Model ID (default: provider default)")
    chat_p.add_argument("--image", default=None, help="Image file to attach")
    chat_p.add_argument(
        "--no-annotate", action="store_true",
        help="Omit the trailing model name and tokens/sec lines",
    )
    chat_p.add_argument("prompt", help="Prompt text")

    return parser


# ─────────────────────────────────────────────────────────────────────
# COMMANDS
# ─────────────────────────────────────────────────────────────────────


def _cmd_providers(settings: Settings) -> int:
    for provider in available_providers(settings):
        print(f"{provider.value}\t{provider.display_name}")
    return 0


async def _cmd_models(settings: Settings, provider: Provider, json_output: bool = False) -> int:
    """List models for one provider. Returns exit code."""
    config = build_connection_config(provider, settings)
    models = await list_models(config)

    if json_output:
        json.dump({"provider": provider.value, "models": models}, sys.stdout, indent=2)
        sys.stdout.write("\n")
    else:
        for model_id in models:
            print(model_id)
        if not models:
            print(f"No models reported by {provider.display_name}", file=sys.stderr)
    return 0


async def _cmd_chat(
    settings: Settings,
    provider: Provider,
    prompt: str,
    model: Optional[str] = None,
    image_path: Optional[str] = None,
    annotate: bool = True,
) -> int:
    """Stream one reply to stdout. Returns exit code."""
    config = build_connection_config(provider, settings)
    image = Path(image_path).read_bytes() if image_path else None

    session = GenerationSession(
        config,
        InMemoryConversationStore(),
        system_prompt=settings.system_instruction,
        annotate=annotate,
    )
    try:
        try:
            generation = session.generate(prompt, image=image, model=model)
        except ConfigError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1

        async for delta in generation:
            sys.stdout.write(delta)
            sys.stdout.flush()
        sys.stdout.write("\n")

        outcome = await generation.result()
    finally:
        await session.aclose()

    if outcome.status is OutcomeStatus.FAILED:
        print(f"Error: {outcome.error}", file=sys.stderr)
        return 1
    return 0


# ─────────────────────────────────────────────────────────────────────
# ENTRY POINT
# ─────────────────────────────────────────────────────────────────────


def main():
    parser = _build_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    # Logging
    level = logging.DEBUG if args.verbose else logging.WARNING
    logging.basicConfig(level=level, format="%(name)s %(message)s", stream=sys.stderr)

    # Load env
    from dotenv import load_dotenv
    load_dotenv()
    settings = load_settings_from_env()

    # Dispatch
    if args.command == "providers":
        code = _cmd_providers(settings)
    elif args.command == "models":
        code = asyncio.run(_cmd_models(
            settings, Provider(args.provider), json_output=args.json_output
        ))
    elif args.command == "chat":
        code = asyncio.run(_cmd_chat(
            settings,
            Provider(args.provider),
            args.prompt,
            model=args.model,
            image_path=args.image,
            annotate=not args.no_annotate,
        ))
    else:
        parser.print_help()
        code = 1

    sys.exit(code)


if __name__ == "__main__":
    main()
