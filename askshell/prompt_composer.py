# --- API DOCUMENTATION for askshell/prompt_composer.py ---
#
# **Purpose:** Renders the fixed set of task prompts. Every renderer is a pure
# function of its arguments: no I/O, no clock, no ambient configuration, so
# identical inputs always give byte-identical payloads.
#
# **Public Functions:**
#
# def compose(template: PromptTemplate, context: Optional[Context] = None, **fields) -> str:
#     """
#     Renders `template` with its task fields (query, command, feedback)
#     and the optional Context. Returns "<system block>\n\n<user instruction>".
#     """
#
# def generation_template_for(context: Optional[Context]) -> PromptTemplate:
#     """GENERATE when the context carries history, CONTEXTUAL_GENERATE otherwise."""
#
# --- END API DOCUMENTATION ---

# askshell/prompt_composer.py

import logging
from enum import Enum
from typing import Callable, Dict, Optional

from askshell.context_builder import Context

logger = logging.getLogger(__name__)


class PromptTemplate(Enum):
    GENERATE = "generate"
    EXPLAIN = "explain"
    IMPROVE = "improve"
    ALTERNATIVES = "alternatives"
    SAFETY_ANALYSIS = "safety-analysis"
    HISTORY_ANALYSIS = "history-analysis"
    CONTEXTUAL_GENERATE = "contextual-generate"


GENERATE_SYSTEM = """You are a helpful assistant that converts natural language queries into terminal commands. Your task is to generate the most appropriate command for the user's query.

IMPORTANT RULES:
1. Provide ONLY the command with no explanation or additional text
2. Do not include any markdown formatting, backticks, or code blocks
3. Generate commands that are safe and commonly used
4. Prefer standard Unix/Linux commands that work across different systems
5. If the query is ambiguous, choose the most common interpretation
6. Do not generate commands that require sudo unless explicitly requested
7. Ensure the command is syntactically correct and executable
8. Consider the current working directory and file context when relevant
9. Use relative paths when appropriate
10. Prefer portable commands over system-specific ones

Examples:
Query: "list all files sorted by size"
Response: ls -laSh

Query: "find all python files"
Response: find . -name "*.py"

Query: "show disk usage"
Response: df -h

Query: "count lines in all text files"
Response: find . -name "*.txt" -exec wc -l {} +

Query: "show git status"
Response: git status"""

EXPLAIN_SYSTEM = """You are a helpful assistant that explains terminal commands in detail. Your task is to provide a clear, comprehensive explanation of what the command does, breaking it down into its components.

EXPLANATION FORMAT:
1. Start with a brief summary of what the command does
2. Break down each part of the command and explain its purpose
3. Mention any important flags or options used
4. Explain the expected output or result
5. Note any potential risks or side effects
6. Suggest related commands or alternatives if relevant

Be educational and thorough, but keep the explanation accessible to users who may not be experts."""

IMPROVE_SYSTEM = """You are a helpful assistant that improves terminal commands based on user feedback. Your task is to modify the command to better match the user's intent.

IMPORTANT RULES:
1. Provide ONLY the improved command with no explanation or additional text
2. Do not include any markdown formatting, backticks, or code blocks
3. Consider the user's feedback carefully and adjust accordingly
4. Maintain the core functionality while addressing the feedback
5. Ensure the improved command is syntactically correct"""

ALTERNATIVES_SYSTEM = """You are a helpful assistant that provides alternative ways to accomplish the same task in the terminal. Your task is to suggest different commands that achieve the same result as the original command.

IMPORTANT RULES:
1. Provide ONLY the alternative commands, one per line
2. Do not include any markdown formatting, backticks, or code blocks
3. Do not include explanations or additional text
4. Provide 2-3 practical alternatives
5. Ensure all alternatives are syntactically correct
6. Consider different tools or approaches that accomplish the same goal"""

SAFETY_SYSTEM = """You are a security-focused assistant that analyzes terminal commands for potential risks. Your task is to identify any safety concerns with the given command.

ANALYSIS FORMAT:
1. Overall risk level (LOW/MEDIUM/HIGH)
2. Specific risks identified
3. Potential consequences
4. Safer alternatives if applicable
5. Recommendations for safe execution

Be thorough in your analysis and err on the side of caution."""

HISTORY_SYSTEM = """You are a helpful assistant that analyzes command history to provide better command suggestions. Your task is to understand the user's workflow and provide a command that fits their current context.

IMPORTANT RULES:
1. Provide ONLY the command with no explanation or additional text
2. Do not include any markdown formatting, backticks, or code blocks
3. Consider the user's recent commands to understand their current task
4. Generate commands that logically follow from their recent activity
5. Maintain consistency with their preferred tools and patterns"""

CONTEXTUAL_SYSTEM = """You are a context-aware assistant that generates terminal commands based on the user's current environment. Consider the current directory, files present, and project context when generating commands.

IMPORTANT RULES:
1. Provide ONLY the command with no explanation or additional text
2. Do not include any markdown formatting, backticks, or code blocks
3. Consider the current working directory and files when generating commands
4. Use relative paths when appropriate
5. Adapt commands to the apparent project type or environment
6. For project-specific tasks, use the appropriate tools (npm, pip, cargo, go, etc.)
7. Consider git context when relevant to the query"""

NO_HISTORY_PLACEHOLDER = "(no recent commands)"


def _join(system_block: str, user_instruction: str) -> str:
    return f"{system_block}\n\n{user_instruction}"


def render_history_block(context: Optional[Context]) -> str:
    if context is None or not context.history:
        return ""
    return "\n\n".join(
        f"Previous query: {entry.query}\nPrevious command: {entry.command}"
        for entry in context.history
    )


def render_environment_block(context: Optional[Context]) -> str:
    if context is None:
        return ""
    lines = [f"Current directory: {context.cwd}"]
    if context.git_status is not None:
        lines.append(
            f"Git repository (branch: {context.git_status.branch}, "
            f"modified files: {context.git_status.modified_count})"
        )
    if context.project_type:
        lines.append(context.project_type)
    lines.append("")
    lines.append("Files in current directory:")
    lines.extend(context.directory_listing)
    return "\n".join(lines)


def _render_generate(context: Optional[Context], query: str) -> str:
    history_block = render_history_block(context)
    if history_block:
        environment = render_environment_block(context)
        environment_block = f"Environment context:\n{environment}\n\n" if environment else ""
        user = (
            f"Here are some recent commands I've run for context:\n\n{history_block}\n\n"
            f"{environment_block}"
            f"Based on this context and my current working directory, please convert the "
            f"following query to a terminal command: {query}"
        )
    else:
        user = f"Convert the following query to a terminal command: {query}"
    return _join(GENERATE_SYSTEM, user)


def _render_contextual_generate(context: Optional[Context], query: str) -> str:
    environment = render_environment_block(context)
    if not environment:
        return _render_generate(None, query)
    return _join(CONTEXTUAL_SYSTEM, f"Environment context:\n{environment}\n\nGenerate a command for this query: {query}")


def _render_explain(context: Optional[Context], command: str) -> str:
    return _join(EXPLAIN_SYSTEM, f"Explain the following terminal command in detail: {command}")


def _render_improve(context: Optional[Context], command: str, feedback: str) -> str:
    return _join(IMPROVE_SYSTEM, f'Here is a command: {command}\n\nBased on this feedback: "{feedback}", please improve the command.')


def _render_alternatives(context: Optional[Context], command: str) -> str:
    return _join(ALTERNATIVES_SYSTEM, f"Provide alternative commands that accomplish the same task as: {command}")


def _render_safety_analysis(context: Optional[Context], command: str) -> str:
    return _join(SAFETY_SYSTEM, f"Analyze the following command for potential security risks and safety concerns: {command}")


def _render_history_analysis(context: Optional[Context], query: str) -> str:
    history_block = render_history_block(context) or NO_HISTORY_PLACEHOLDER
    return _join(HISTORY_SYSTEM, f"Based on this command history:\n\n{history_block}\n\nGenerate a command for this query: {query}")


_RENDERERS: Dict[PromptTemplate, Callable[..., str]] = {
    PromptTemplate.GENERATE: _render_generate,
    PromptTemplate.EXPLAIN: _render_explain,
    PromptTemplate.IMPROVE: _render_improve,
    PromptTemplate.ALTERNATIVES: _render_alternatives,
    PromptTemplate.SAFETY_ANALYSIS: _render_safety_analysis,
    PromptTemplate.HISTORY_ANALYSIS: _render_history_analysis,
    PromptTemplate.CONTEXTUAL_GENERATE: _render_contextual_generate,
}


def compose(template: PromptTemplate, context: Optional[Context] = None, **fields: str) -> str:
    """Raises TypeError when a field the template needs is missing or unknown."""
    payload = _RENDERERS[template](context, **fields)
    logger.debug(f"Composed '{template.value}' prompt ({len(payload)} chars):\n{payload}")
    return payload


def generation_template_for(context: Optional[Context]) -> PromptTemplate:
    if context is not None and context.has_history:
        return PromptTemplate.GENERATE
    return PromptTemplate.CONTEXTUAL_GENERATE
