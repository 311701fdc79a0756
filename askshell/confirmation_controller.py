# --- API DOCUMENTATION for askshell/confirmation_controller.py ---
#
# **Purpose:** Drives one query through the pipeline
#   Received -> ContextBuilt -> PromptComposed -> ModelCalled -> Sanitized
#   -> Classified -> {AutoApprovedSafe | AwaitingUserDecision}
#   -> {Logged | NotLogged} -> {Executed | Skipped}
# with an early Failed(reason) exit for model errors and empty commands.
#
# **Public Classes:**
#
# class ConfirmationController:
#     async run_generate(query_text, cwd=None) -> PipelineResult
#     async run_improve(command, feedback, cwd=None) -> PipelineResult
#     async run_suggest(query_text, cwd=None) -> PipelineResult
#
# class PipelineResult:
#     final_state, command, verdict, command_exit_code, failure, error, trace
#     exit_status -> 0 for Executed/Skipped, 1 for Failed
#
# **Key behaviour:**
# - Model errors abort before anything is written to history.
# - History is written once, after the decision and before execution,
#   so a declined command is still logged.
# - The candidate command reaches the OS only through _execute(), which is
#   the single asyncio.create_subprocess_shell call site in the project.
#
# --- END API DOCUMENTATION ---

# askshell/confirmation_controller.py

import os
import time
import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Tuple

from askshell.config_handler import AppSettings
from askshell.context_builder import Context, ContextBuilder
from askshell.history_store import HistoryEntry, HistoryStore
from askshell.ollama_client import ModelClientError, OllamaClient, ensure_model_ready
from askshell.prompt_composer import PromptTemplate, compose, generation_template_for
from askshell.risk_classifier import RiskRule, RiskVerdict, classify
from askshell.sanitizer import sanitize

logger = logging.getLogger(__name__)

AFFIRMATIVE_ANSWERS = ("y", "Y")
CONFIRMATION_PROMPT = "Execute this command? [y/N] "


class PipelineState(Enum):
    RECEIVED = "Received"
    CONTEXT_BUILT = "ContextBuilt"
    PROMPT_COMPOSED = "PromptComposed"
    MODEL_CALLED = "ModelCalled"
    SANITIZED = "Sanitized"
    CLASSIFIED = "Classified"
    AUTO_APPROVED_SAFE = "AutoApprovedSafe"
    AWAITING_USER_DECISION = "AwaitingUserDecision"
    LOGGED = "Logged"
    NOT_LOGGED = "NotLogged"
    EXECUTED = "Executed"
    SKIPPED = "Skipped"
    FAILED = "Failed"


class FailureReason(Enum):
    MODEL_ERROR = "model_error"
    EMPTY_COMMAND = "empty_command"
    EXECUTION_ERROR = "execution_error"


@dataclass(frozen=True)
class Query:
    text: str
    timestamp: float

    @classmethod
    def create(cls, text: str) -> "Query":
        return cls(text=text, timestamp=time.time())


@dataclass
class PipelineResult:
    query: Query
    final_state: PipelineState = PipelineState.RECEIVED
    command: Optional[str] = None
    verdict: Optional[RiskVerdict] = None
    approved: bool = False
    logged: bool = False
    command_exit_code: Optional[int] = None
    failure: Optional[FailureReason] = None
    error: Optional[ModelClientError] = None
    trace: List[PipelineState] = field(default_factory=list)

    @property
    def failed(self) -> bool:
        return self.final_state is PipelineState.FAILED

    @property
    def exit_status(self) -> int:
        """CLI exit status: a decline or a non-zero command exit is still a completed action."""
        return 1 if self.failed else 0


class ConfirmationController:
    def __init__(self, settings: AppSettings, client: OllamaClient, ui,
                 history_store: Optional[HistoryStore] = None,
                 context_builder: Optional[ContextBuilder] = None,
                 rules: Optional[Tuple[RiskRule, ...]] = None):
        self.settings = settings
        self.client = client
        self.ui = ui
        self.history_store = history_store if settings.history_enabled else None
        self.context_builder = context_builder or ContextBuilder(
            history_store=self.history_store,
            history_entries=settings.context_history_entries,
            listing_limit=settings.directory_listing_limit,
        )
        self.rules = rules if rules is not None else settings.risk_rules()

    # --- Entry points ---

    async def run_generate(self, query_text: str, cwd: Optional[str] = None) -> PipelineResult:
        def render(context: Context) -> str:
            return compose(generation_template_for(context), context, query=query_text)
        return await self._run_pipeline(Query.create(query_text), render, cwd)

    async def run_improve(self, command: str, feedback: str, cwd: Optional[str] = None) -> PipelineResult:
        def render(context: Context) -> str:
            return compose(PromptTemplate.IMPROVE, context, command=command, feedback=feedback)
        return await self._run_pipeline(Query.create(f"{feedback} (improving: {command})"), render, cwd)

    async def run_suggest(self, query_text: str, cwd: Optional[str] = None) -> PipelineResult:
        def render(context: Context) -> str:
            return compose(PromptTemplate.HISTORY_ANALYSIS, context, query=query_text)
        return await self._run_pipeline(Query.create(query_text), render, cwd)

    # --- State machine ---

    def _transition(self, result: PipelineResult, state: PipelineState) -> None:
        previous = result.final_state
        result.final_state = state
        result.trace.append(state)
        logger.info(f"Pipeline transition: {previous.value} -> {state.value}")

    def _fail(self, result: PipelineResult, reason: FailureReason, message: str,
              error: Optional[ModelClientError] = None) -> PipelineResult:
        result.failure = reason
        result.error = error
        self._transition(result, PipelineState.FAILED)
        logger.error(f"Pipeline failed ({reason.value}): {message}")
        self.ui.append_output(f"❌ {message}", style_class='error')
        return result

    async def _run_pipeline(self, query: Query, render: Callable[[Context], str],
                            cwd: Optional[str]) -> PipelineResult:
        result = PipelineResult(query=query)
        self._transition(result, PipelineState.RECEIVED)
        cwd = os.path.abspath(cwd) if cwd else os.getcwd()

        context = await self.context_builder.build(cwd)
        self._transition(result, PipelineState.CONTEXT_BUILT)

        payload = render(context)
        self._transition(result, PipelineState.PROMPT_COMPOSED)

        self.ui.append_output("🤔 Thinking...", style_class='ai-thinking')
        try:
            await ensure_model_ready(self.client, self.settings.model)
            raw_response = await self.client.generate(payload)
        except ModelClientError as e:
            return self._fail(result, FailureReason.MODEL_ERROR, e.message, error=e)
        self._transition(result, PipelineState.MODEL_CALLED)

        command = sanitize(raw_response)
        result.command = command
        self._transition(result, PipelineState.SANITIZED)
        if not command:
            return self._fail(result, FailureReason.EMPTY_COMMAND, "Generated command is empty after cleaning.")

        verdict = classify(command, self.settings.safety_level, self.rules)
        result.verdict = verdict
        self._transition(result, PipelineState.CLASSIFIED)

        self.ui.append_output("\n💻 Generated command:", style_class='info')
        self.ui.append_output(f"  {command}\n", style_class='command')

        if verdict.is_safe and self.settings.auto_confirm:
            self._transition(result, PipelineState.AUTO_APPROVED_SAFE)
            self.ui.append_output("Auto-confirm is enabled and the command looks safe.", style_class='info')
            result.approved = True
        else:
            if not verdict.is_safe:
                self._show_warning(command, verdict)
            self._transition(result, PipelineState.AWAITING_USER_DECISION)
            result.approved = await self._ask_user()

        self._log_history(result, query, command)

        if not result.approved:
            self.ui.append_output("Command not executed.", style_class='info')
            self._transition(result, PipelineState.SKIPPED)
            return result

        try:
            result.command_exit_code = await self._execute(command, cwd)
        except OSError as e:
            return self._fail(result, FailureReason.EXECUTION_ERROR, f"Could not start shell '{self.settings.shell}': {e}")
        if result.command_exit_code == 0:
            self.ui.append_output("✅ Command executed successfully", style_class='success')
        else:
            self.ui.append_output(f"⚠️ Command exited with code {result.command_exit_code}", style_class='warning')
        self._transition(result, PipelineState.EXECUTED)
        return result

    def _show_warning(self, command: str, verdict: RiskVerdict) -> None:
        self.ui.append_output("⚠️  WARNING: This command may be dangerous!", style_class='security-critical')
        for reason in verdict.reasons:
            self.ui.append_output(f"  • {reason}", style_class='security-warning')
        self.ui.append_output(f"Safety level: {self.settings.safety_level.label}", style_class='info')
        self.ui.append_output(
            f"Run 'askshell explain \"{command}\"' for a detailed explanation before executing.\n",
            style_class='info',
        )

    async def _ask_user(self) -> bool:
        try:
            answer = await self.ui.prompt_for_confirmation(CONFIRMATION_PROMPT)
        except (EOFError, KeyboardInterrupt):
            logger.info("Confirmation prompt interrupted; treating as decline.")
            return False
        return (answer or "").strip() in AFFIRMATIVE_ANSWERS

    def _log_history(self, result: PipelineResult, query: Query, command: str) -> None:
        if self.history_store is None:
            self._transition(result, PipelineState.NOT_LOGGED)
            return
        try:
            self.history_store.append(HistoryEntry.create(query.text, command, timestamp=int(query.timestamp)))
        except OSError as e:
            logger.warning(f"Could not write history entry: {e}")
            self._transition(result, PipelineState.NOT_LOGGED)
            return
        result.logged = True
        self._transition(result, PipelineState.LOGGED)

    async def _execute(self, command: str, cwd: str) -> int:
        """Runs the exact candidate string through the configured shell, inheriting the terminal."""
        self.ui.append_output("Executing command...", style_class='executing')
        logger.info(f"Executing command: '{command}' in '{cwd}' with shell '{self.settings.shell}'")
        process = await asyncio.create_subprocess_shell(command, executable=self.settings.shell, cwd=cwd)
        exit_code = await process.wait()
        logger.info(f"Command '{command}' exited with code {exit_code}")
        return exit_code
