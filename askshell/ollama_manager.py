# --- API DOCUMENTATION for askshell/ollama_manager.py ---
#
# **Purpose:** User-facing diagnostics for the Ollama backend. Every function
# reports through append_output_func and returns True on success, so the CLI
# can map the result straight onto an exit status.
#
# **Public Functions:**
#
# async def run_connection_test(client, append_output_func, model=None) -> bool
# async def list_models_display(client, append_output_func) -> bool
# async def pull_model(client, model, append_output_func) -> bool
# async def system_check(client, settings, store, append_output_func) -> bool
#
# --- END API DOCUMENTATION ---

# askshell/ollama_manager.py

import os
import logging

from askshell.config_handler import AppSettings, ConfigStore
from askshell.ollama_client import ModelClientError, OllamaClient
from askshell.sanitizer import sanitize

logger = logging.getLogger(__name__)

TEST_PROMPT = "Say 'Hello from askshell!'"


async def run_connection_test(client: OllamaClient, append_output_func, model: str | None = None) -> bool:
    """Ping, model check, then a short generation, reporting each step."""
    model = model or client.settings.model
    append_output_func(f"Testing connection to Ollama at {client.host}...", style_class='info')

    if not await client.is_reachable():
        append_output_func("❌ Cannot connect to Ollama. Please start it with 'ollama serve'.", style_class='error')
        return False
    append_output_func("✅ Ollama is running", style_class='success')

    try:
        if not await client.has_model(model):
            append_output_func(f"❌ Model '{model}' is not available. Install it with 'ollama pull {model}'.", style_class='error')
            return False
        append_output_func(f"✅ Model '{model}' is available", style_class='success')

        append_output_func("Testing with a simple prompt...", style_class='info')
        reply = await client.generate(TEST_PROMPT, model=model)
    except ModelClientError as e:
        logger.error(f"Connection test failed ({e.kind}): {e.message}")
        append_output_func(f"❌ {e.message}", style_class='error')
        return False

    append_output_func(f"✅ Response: {sanitize(reply)}", style_class='success')
    logger.info(f"Connection test succeeded for model '{model}'.")
    return True


async def list_models_display(client: OllamaClient, append_output_func) -> bool:
    try:
        models = await client.list_models()
    except ModelClientError as e:
        append_output_func(f"❌ Could not list models: {e.message}", style_class='error')
        return False

    append_output_func(f"Available models on {client.host}:", style_class='info-header')
    if not models:
        append_output_func("  (none installed; try 'askshell pull llama3.2')", style_class='info-item-empty')
    for name in sorted(models):
        marker = " (current)" if name in (client.settings.model, f"{client.settings.model}:latest") else ""
        append_output_func(f"  • {name}{marker}", style_class='info-item')
    return True


async def pull_model(client: OllamaClient, model: str, append_output_func) -> bool:
    append_output_func(f"Pulling model '{model}' (this may take a while)...", style_class='info')
    try:
        status = await client.pull(model)
    except ModelClientError as e:
        append_output_func(f"❌ Failed to pull '{model}': {e.message}", style_class='error')
        return False
    append_output_func(f"✅ Model '{model}' pulled ({status})", style_class='success')
    return True


async def system_check(client: OllamaClient, settings: AppSettings, store: ConfigStore, append_output_func) -> bool:
    """Backend, model, config file and history file status plus the active settings."""
    append_output_func("askshell system check", style_class='info-header')
    ok = True

    if await client.is_reachable():
        append_output_func(f"✅ Ollama reachable at {settings.host}", style_class='success')
        try:
            if await client.has_model(settings.model):
                append_output_func(f"✅ Model '{settings.model}' is available", style_class='success')
            else:
                append_output_func(f"❌ Model '{settings.model}' is not installed (run 'ollama pull {settings.model}')", style_class='error')
                ok = False
        except ModelClientError as e:
            append_output_func(f"❌ Could not list models: {e.message}", style_class='error')
            ok = False
    else:
        append_output_func(f"❌ Ollama not reachable at {settings.host} (run 'ollama serve')", style_class='error')
        ok = False

    if os.path.exists(store.user_config_path):
        append_output_func(f"✅ Config file: {store.user_config_path}", style_class='success')
    else:
        append_output_func(f"ℹ️ No user config yet ({store.user_config_path}); using defaults", style_class='info')

    if not settings.history_enabled:
        append_output_func("ℹ️ History is disabled", style_class='info')
    elif os.path.exists(settings.history_path):
        append_output_func(f"✅ History file: {settings.history_path}", style_class='success')
    else:
        append_output_func(f"ℹ️ History file will be created at {settings.history_path}", style_class='info')

    append_output_func("\nCurrent settings:", style_class='info-header')
    for key, value in store.describe():
        append_output_func(f"  {key} = {value}", style_class='info-item')
    append_output_func(f"  ({settings.safety_level.description})", style_class='info-item-empty')
    return ok
