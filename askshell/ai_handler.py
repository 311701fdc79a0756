# askshell/ai_handler.py

import logging

from askshell.config_handler import AppSettings
from askshell.ollama_client import ModelClientError, OllamaClient, ensure_model_ready
from askshell.prompt_composer import PromptTemplate, compose
from askshell.risk_classifier import RiskVerdict, classify
from askshell.sanitizer import sanitize

# --- Logging Setup ---
logger = logging.getLogger(__name__)

MAX_ALTERNATIVES = 3


async def _generate_text(template: PromptTemplate, client: OllamaClient, append_output_func, **fields) -> str | None:
    """Runs one text-only task. Model errors are reported through the UI and yield None."""
    try:
        await ensure_model_ready(client, client.settings.model)
        append_output_func("🤔 Thinking...", style_class='ai-thinking')
        return await client.generate(compose(template, None, **fields))
    except ModelClientError as e:
        logger.error(f"AI task '{template.value}' failed ({e.kind}): {e.message}")
        append_output_func(f"❌ {e.message}", style_class='error')
        return None


async def explain_linux_command_with_ai(command_to_explain: str, client: OllamaClient, append_output_func) -> str | None:
    """
    Asks the model for a step-by-step explanation of a command. Nothing is executed.

    Args:
        command_to_explain: The command string to be explained.
        client: The configured OllamaClient.
        append_output_func: A reference to ConsoleUI.append_output for UI updates.

    Returns:
        The explanation text, or None on a model error.
    """
    logger.info(f"Requesting explanation for: '{command_to_explain}'")
    explanation = await _generate_text(PromptTemplate.EXPLAIN, client, append_output_func, command=command_to_explain)
    if explanation is None:
        return None
    explanation = explanation.strip()
    append_output_func(f"\n📖 Explanation of: {command_to_explain}\n", style_class='info-header')
    append_output_func(explanation, style_class='ai-response')
    return explanation


async def suggest_alternatives(command: str, client: OllamaClient, settings: AppSettings,
                               append_output_func) -> list[tuple[str, RiskVerdict]] | None:
    """Returns up to three sanitized alternatives, each paired with its local risk verdict."""
    logger.info(f"Requesting alternatives for: '{command}'")
    raw = await _generate_text(PromptTemplate.ALTERNATIVES, client, append_output_func, command=command)
    if raw is None:
        return None

    rules = settings.risk_rules()
    alternatives = []
    for line in raw.splitlines():
        candidate = sanitize(line.lstrip("-*• ").strip())
        # Models sometimes number their lines despite the instructions.
        if len(candidate) > 2 and candidate[0].isdigit() and candidate[1:3] in (". ", ") "):
            candidate = sanitize(candidate[3:])
        if candidate and candidate != command and candidate not in [alt for alt, _ in alternatives]:
            alternatives.append((candidate, classify(candidate, settings.safety_level, rules)))
        if len(alternatives) == MAX_ALTERNATIVES:
            break

    append_output_func(f"\n🔀 Alternatives for: {command}\n", style_class='info-header')
    if not alternatives:
        append_output_func("  (the model did not suggest any alternatives)", style_class='info-item-empty')
    for candidate, verdict in alternatives:
        style = 'info-item' if verdict.is_safe else 'security-warning'
        note = "" if verdict.is_safe else f"   [⚠️ {', '.join(verdict.reasons)}]"
        append_output_func(f"  {candidate}{note}", style_class=style)
    return alternatives


async def analyze_command_safety(command: str, client: OllamaClient, settings: AppSettings,
                                 append_output_func) -> str | None:
    """Prints the local rule verdict, then the model's own risk analysis."""
    verdict = classify(command, settings.safety_level, settings.risk_rules())
    append_output_func(f"\n🛡️ Local rule check ({settings.safety_level.label} level): {verdict.label.upper()}",
                       style_class='success' if verdict.is_safe else 'security-critical')
    for reason in verdict.reasons:
        append_output_func(f"  • {reason}", style_class='security-warning')

    logger.info(f"Requesting safety analysis for: '{command}'")
    analysis = await _generate_text(PromptTemplate.SAFETY_ANALYSIS, client, append_output_func, command=command)
    if analysis is None:
        return None
    analysis = analysis.strip()
    append_output_func("\n🔍 Model analysis:\n", style_class='info-header')
    append_output_func(analysis, style_class='ai-response')
    return analysis
