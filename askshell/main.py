# --- API DOCUMENTATION for askshell/main.py ---
#
# **Purpose:** The `askshell` console script. Parses the command line, loads
# configuration, sets up logging and runs one asynchronous action per
# invocation.
#
# **Exit status:** 0 when the requested action completed (a declined command
# counts as completed), 1 on any failure, 2 on usage errors (argparse),
# 130 when interrupted.
#
# **Public Functions:**
#
# def main(argv: Optional[List[str]] = None) -> int
# def build_parser() -> argparse.ArgumentParser
# def setup_logging(config_dir: str, verbose: bool = False) -> None
#
# --- END API DOCUMENTATION ---

# askshell/main.py

import argparse
import asyncio
import datetime
import logging
import os
import sys
from typing import List, Optional

from askshell import __version__
from askshell import ai_handler, ollama_manager
from askshell.config_handler import (
    AppSettings,
    ConfigStore,
    InvalidConfigValueError,
    UnknownConfigKeyError,
    get_config_dir,
)
from askshell.confirmation_controller import ConfirmationController
from askshell.history_store import HistoryStore
from askshell.ollama_client import OllamaClient
from askshell.risk_classifier import SAMPLE_COMMANDS, SafetyLevel, classify
from askshell.ui_manager import ConsoleUI

LOG_DIR_NAME = "logs"
LOG_FILENAME = "askshell.log"
LOG_FORMAT = '%(asctime)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s'
DEFAULT_HISTORY_DISPLAY = 10

SUBCOMMANDS = {
    "generate", "explain", "improve", "alternatives", "analyze", "suggest",
    "test", "models", "pull", "safety", "history", "config", "check",
}

# Actions whose free text is collected verbatim, flags included.
TEXT_ARGUMENTS = {
    "generate": "query", "suggest": "query", "improve": "feedback",
    "explain": "command", "alternatives": "command", "analyze": "command",
}

logger = logging.getLogger(__name__)


def setup_logging(config_dir: str, verbose: bool = False) -> None:
    """File logging under <config_dir>/logs; verbose adds DEBUG output on stderr."""
    handlers: List[logging.Handler] = []
    log_dir = os.path.join(config_dir, LOG_DIR_NAME)
    try:
        os.makedirs(log_dir, exist_ok=True)
        handlers.append(logging.FileHandler(os.path.join(log_dir, LOG_FILENAME)))
    except OSError as e:
        print(f"⚠️ Could not open log file in {log_dir}: {e}", file=sys.stderr)
        handlers.append(logging.NullHandler())

    if verbose:
        stream_handler = logging.StreamHandler(sys.stderr)
        stream_handler.setLevel(logging.DEBUG)
        handlers.append(stream_handler)

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="askshell",
        description="Turn natural-language requests into shell commands with a local Ollama model.",
        epilog="Shorthand: `askshell <request>` is the same as `askshell generate <request>`.",
    )
    parser.add_argument("--version", action="version", version=f"askshell {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="log debug output to stderr")
    sub = parser.add_subparsers(dest="action", metavar="<command>")

    p = sub.add_parser("generate", help="generate a command from a request and offer to run it")
    p.add_argument("query", nargs=argparse.REMAINDER)
    p = sub.add_parser("explain", help="explain what a command does")
    p.add_argument("command", nargs=argparse.REMAINDER)
    p = sub.add_parser("improve", help="improve a command based on feedback and offer to run it")
    p.add_argument("command")
    p.add_argument("feedback", nargs=argparse.REMAINDER)
    p = sub.add_parser("alternatives", help="suggest alternative commands (nothing is executed)")
    p.add_argument("command", nargs=argparse.REMAINDER)
    p = sub.add_parser("analyze", help="analyze a command for safety risks (nothing is executed)")
    p.add_argument("command", nargs=argparse.REMAINDER)
    p = sub.add_parser("suggest", help="generate a command informed by your askshell history")
    p.add_argument("query", nargs=argparse.REMAINDER)
    p = sub.add_parser("test", help="test the connection to Ollama")
    p.add_argument("model", nargs="?")
    sub.add_parser("models", help="list installed models")
    p = sub.add_parser("pull", help="download a model")
    p.add_argument("model")
    p = sub.add_parser("safety", help="show or set the safety level, or test it on sample commands")
    p.add_argument("level", nargs="?", metavar="low|medium|high|test")
    p = sub.add_parser("history", help="show recent history (default 10) or clear it")
    p.add_argument("count", nargs="?", metavar="N|clear")
    p = sub.add_parser("config", help="show all settings, or get/set one")
    p.add_argument("operation", nargs="?", choices=["get", "set"])
    p.add_argument("key", nargs="?")
    p.add_argument("value", nargs="?")
    sub.add_parser("check", help="check backend, model, config and history")
    return parser


def _join_words(words: List[str]) -> str:
    if words and words[0] == "--":
        words = words[1:]
    return " ".join(words)


def _normalize_argv(argv: List[str]) -> List[str]:
    """Inserts 'generate' before a bare request so `askshell list files` works."""
    for index, arg in enumerate(argv):
        if arg.startswith("-"):
            continue
        if arg not in SUBCOMMANDS:
            return argv[:index] + ["generate"] + argv[index:]
        break
    return argv


# --- Local (no model) actions ---

def show_safety(store: ConfigStore, settings: AppSettings, ui: ConsoleUI, level_arg: Optional[str]) -> int:
    if level_arg is None:
        ui.append_output(f"Current safety level: {settings.safety_level.label}", style_class='info-header')
        ui.append_output(settings.safety_level.description, style_class='info')
        return 0

    if level_arg.lower() == "test":
        rules = settings.risk_rules()
        ui.append_output(f"Testing safety level: {settings.safety_level.label}", style_class='info-header')
        ui.append_output(settings.safety_level.description, style_class='info')
        for command in SAMPLE_COMMANDS:
            verdict = classify(command, settings.safety_level, rules)
            if verdict.is_safe:
                ui.append_output(f"  ✅ SAFE:   {command}", style_class='success')
            else:
                ui.append_output(f"  ⚠️ UNSAFE: {command}  ({'; '.join(verdict.reasons)})", style_class='security-warning')
        return 0

    try:
        store.set("SAFETY_LEVEL", level_arg)
    except InvalidConfigValueError as e:
        ui.append_output(f"❌ {e}", style_class='error')
        ui.append_output(f"Current level: {settings.safety_level.label}", style_class='info')
        return 1
    level = SafetyLevel.parse(level_arg)
    ui.append_output(f"Safety level set to: {level.label}", style_class='success')
    ui.append_output(level.description, style_class='info')
    return 0


def show_history(settings: AppSettings, ui: ConsoleUI, count_arg: Optional[str]) -> int:
    store = HistoryStore(settings.history_path, settings.max_history)
    if count_arg == "clear":
        store.clear()
        ui.append_output("✅ History cleared", style_class='success')
        return 0

    try:
        count = int(count_arg) if count_arg is not None else DEFAULT_HISTORY_DISPLAY
    except ValueError:
        ui.append_output(f"❌ Expected a number or 'clear', got '{count_arg}'", style_class='error')
        return 1

    entries = store.recent(count)
    if not entries:
        ui.append_output("No history yet.", style_class='info-item-empty')
        return 0
    ui.append_output(f"Last {len(entries)} askshell entries:", style_class='info-header')
    for entry in entries:
        when = datetime.datetime.fromtimestamp(entry.timestamp).strftime("%Y-%m-%d %H:%M:%S")
        ui.append_output(f"  [{when}] {entry.query}", style_class='ai-query')
        ui.append_output(f"      → {entry.command}", style_class='info-item')
    return 0


def handle_config(store: ConfigStore, ui: ConsoleUI, args: argparse.Namespace) -> int:
    try:
        if args.operation is None:
            ui.append_output("askshell configuration:", style_class='info-header')
            for key, value in store.describe():
                ui.append_output(f"  {key} = {value}", style_class='info-item')
            ui.append_output(f"\nConfig file: {store.user_config_path}", style_class='info')
            return 0
        if not args.key:
            ui.append_output(f"❌ 'config {args.operation}' needs a key", style_class='error')
            return 1
        if args.operation == "get":
            ui.append_output(store.get(args.key))
            return 0
        if args.value is None:
            ui.append_output("❌ 'config set' needs a key and a value", style_class='error')
            return 1
        store.set(args.key, args.value)
        ui.append_output(f"✅ {args.key.upper()} = {store.get(args.key)}", style_class='success')
        return 0
    except (UnknownConfigKeyError, InvalidConfigValueError) as e:
        ui.append_output(f"❌ {e}", style_class='error')
        return 1
    except IOError as e:
        ui.append_output(f"❌ {e}", style_class='error')
        return 1


# --- Dispatch ---

async def run_action(args: argparse.Namespace, store: ConfigStore, settings: AppSettings, ui: ConsoleUI) -> int:
    action = args.action
    if action == "safety":
        return show_safety(store, settings, ui, args.level)
    if action == "history":
        return show_history(settings, ui, args.count)
    if action == "config":
        return handle_config(store, ui, args)

    client = OllamaClient(settings)
    output = ui.append_output

    if action in ("generate", "suggest", "improve"):
        controller = ConfirmationController(
            settings, client, ui, history_store=HistoryStore(settings.history_path, settings.max_history)
        )
        if action == "improve":
            result = await controller.run_improve(args.command, _join_words(args.feedback))
        elif action == "suggest":
            result = await controller.run_suggest(_join_words(args.query))
        else:
            result = await controller.run_generate(_join_words(args.query))
        logger.info(f"Pipeline finished in state {result.final_state.value} (exit status {result.exit_status})")
        return result.exit_status

    if action == "explain":
        return 0 if await ai_handler.explain_linux_command_with_ai(_join_words(args.command), client, output) is not None else 1
    if action == "alternatives":
        return 0 if await ai_handler.suggest_alternatives(_join_words(args.command), client, settings, output) is not None else 1
    if action == "analyze":
        return 0 if await ai_handler.analyze_command_safety(_join_words(args.command), client, settings, output) is not None else 1
    if action == "test":
        return 0 if await ollama_manager.run_connection_test(client, output, args.model) else 1
    if action == "models":
        return 0 if await ollama_manager.list_models_display(client, output) else 1
    if action == "pull":
        return 0 if await ollama_manager.pull_model(client, args.model, output) else 1
    if action == "check":
        return 0 if await ollama_manager.system_check(client, settings, store, output) else 1

    logger.error(f"Unhandled action: {action}")
    return 1


def main(argv: Optional[List[str]] = None) -> int:
    argv = _normalize_argv(list(sys.argv[1:] if argv is None else argv))
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.action is None:
        parser.print_help()
        return 1
    text_dest = TEXT_ARGUMENTS.get(args.action)
    if text_dest and not _join_words(getattr(args, text_dest)).strip():
        parser.error(f"'{args.action}' needs {text_dest} text")

    config_dir = get_config_dir()
    setup_logging(config_dir, verbose=args.verbose)
    logger.info(f"askshell {__version__} starting: action={args.action}")

    try:
        store = ConfigStore()
    except FileNotFoundError as e:
        print(f"❌ {e}", file=sys.stderr)
        return 1
    try:
        settings = AppSettings.from_store(store)
    except (ValueError, TypeError) as e:
        logger.error(f"Invalid configuration in {store.user_config_path}: {e}")
        print(f"❌ Invalid configuration in {store.user_config_path}: {e}", file=sys.stderr)
        if args.action != "config":
            print("Fix it with 'askshell config set <key> <value>' or by editing the file.", file=sys.stderr)
            return 1
        return handle_config(store, ConsoleUI(), args)
    if settings.verbose and not args.verbose:
        setup_logging(config_dir, verbose=True)

    ui = ConsoleUI()
    try:
        return asyncio.run(run_action(args, store, settings, ui))
    except KeyboardInterrupt:
        logger.info("Interrupted by user.")
        print("\nInterrupted.", file=sys.stderr)
        return 130


def run():
    sys.exit(main())


if __name__ == "__main__":
    run()
