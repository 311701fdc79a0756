# tests/test_ui_manager.py

import pytest
from unittest.mock import AsyncMock, MagicMock

from prompt_toolkit.formatted_text import FormattedText

from askshell.ui_manager import STYLE, ConsoleUI


@pytest.fixture
def mock_print(mocker):
    return mocker.patch("askshell.ui_manager.print_formatted_text")


def test_append_output_uses_style_class(mock_print):
    ui = ConsoleUI()
    ui.append_output("✅ done", style_class='success')
    mock_print.assert_called_once_with(FormattedText([('class:success', "✅ done")]), style=STYLE)

def test_append_output_default_class(mock_print):
    ConsoleUI().append_output("plain")
    assert mock_print.call_args.args[0] == FormattedText([('class:default', "plain")])

def test_every_output_class_is_styled():
    defined = {rule[0] for rule in STYLE.style_rules}
    for style_class in ('info', 'info-header', 'success', 'error', 'warning', 'security-critical',
                        'security-warning', 'ai-thinking', 'ai-response', 'command', 'executing', 'prompt'):
        assert style_class in defined

@pytest.mark.asyncio
async def test_prompt_for_confirmation_returns_raw_answer(mocker):
    session = MagicMock()
    session.prompt_async = AsyncMock(return_value=" y ")
    mocker.patch("askshell.ui_manager.PromptSession", return_value=session)

    ui = ConsoleUI()
    assert await ui.prompt_for_confirmation("Execute this command? [y/N] ") == " y "
    session.prompt_async.assert_awaited_once()

@pytest.mark.asyncio
async def test_prompt_for_confirmation_propagates_eof(mocker):
    session = MagicMock()
    session.prompt_async = AsyncMock(side_effect=EOFError)
    mocker.patch("askshell.ui_manager.PromptSession", return_value=session)

    with pytest.raises(EOFError):
        await ConsoleUI().prompt_for_confirmation("?")
