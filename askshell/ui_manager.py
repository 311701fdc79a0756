# askshell/ui_manager.py

import logging

from prompt_toolkit import PromptSession, print_formatted_text
from prompt_toolkit.formatted_text import FormattedText
from prompt_toolkit.styles import Style

logger = logging.getLogger(__name__)

STYLE = Style.from_dict({
    'default': '',
    'info': '#61afef',
    'info-header': 'bold #61afef',
    'info-item': '#abb2bf',
    'info-item-empty': 'italic #5c6370',
    'success': '#98c379',
    'error': '#e06c75',
    'warning': '#d19a66',
    'security-critical': 'bold #e06c75',
    'security-warning': '#e06c75',
    'ai-query': '#c678dd',
    'ai-thinking': 'italic #56b6c2',
    'ai-response': '#56b6c2',
    'command': 'bold #e5c07b',
    'executing': 'bold #61afef',
    'prompt': 'bold #d19a66',
})


class ConsoleUI:
    """Styled line output and the single blocking yes/no read used by the controller."""

    def __init__(self, style: Style = STYLE):
        self.style = style
        self._session = None

    def append_output(self, text: str, style_class: str = 'default'):
        logger.info(f"UI_OUTPUT: {text.rstrip()}")
        print_formatted_text(FormattedText([(f'class:{style_class}', text)]), style=self.style)

    async def prompt_for_confirmation(self, message: str) -> str:
        """Blocks until the user answers. EOFError/KeyboardInterrupt propagate to the caller."""
        if self._session is None:
            self._session = PromptSession()
        answer = await self._session.prompt_async(FormattedText([('class:prompt', message)]), style=self.style)
        logger.info(f"User answered confirmation prompt with: {answer!r}")
        return answer
