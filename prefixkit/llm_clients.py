"""
Backends that carry out a DispatchRecord.

AnthropicBackend and OpenRouterBackend send the rendered prompt to a model;
ClipboardBackend copies it for pasting into an assistant session by hand.
"""

import logging
import os
import re

import anthropic
import openai
from dotenv import load_dotenv

from .prompts import SYSTEM_PROMPT, render_prompt
from .results import DispatchResult, FileChange, Option, Outcome
from .utils import BASE_DELAY, MAX_DELAY, MAX_RETRIES, retry_with_backoff

logger = logging.getLogger(__name__)

DEFAULT_ANTHROPIC_MODEL = "claude-sonnet-4-6"
DEFAULT_OPENROUTER_MODEL = "minimax/minimax-m2.5"
OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"

_OPTION_RE = re.compile(r"^\s*(?:\*\*)?(?:Option\s+)?([A-Z])(?:\*\*)?\s*[\).:]\s+(.+?)\s*$")
_FILE_RE = re.compile(r"^\s*FILE:\s*(?P<path>[^\s:]+)(?::(?P<start>\d+)(?:-(?P<end>\d+))?)?\s*$")
_CHANGE_RE = re.compile(r"^\s*CHANGE:\s*(.+?)\s*$")
_REASONING_RE = re.compile(r"^\s*REASONING:\s*(.*)$")


def parse_options(text: str) -> list[Option]:
    """Lettered alternatives (``A) ...``, ``Option B: ...``) in reply order."""
    options: list[Option] = []
    seen = set()
    for line in text.splitlines():
        match = _OPTION_RE.match(line)
        if not match:
            continue
        key = match.group(1)
        if key in seen:
            continue
        seen.add(key)
        options.append(Option(key=key, description=match.group(2)))
    return options if len(options) > 1 else []


def build_result(record, text: str) -> DispatchResult:
    """Interpret a model reply according to the dispatch flags."""
    files: list[FileChange] = []
    changes: list[str] = []
    reasoning_lines: list[str] = []
    in_reasoning = False
    lines_changed = 0

    for line in text.splitlines():
        file_match = _FILE_RE.match(line)
        if file_match:
            start = file_match.group("start")
            end = file_match.group("end")
            change = FileChange(
                path=file_match.group("path"),
                start=int(start) if start else None,
                end=int(end) if end else None,
            )
            files.append(change)
            if change.start is not None and change.end is not None:
                lines_changed += change.end - change.start + 1
            in_reasoning = False
            continue

        change_match = _CHANGE_RE.match(line)
        if change_match:
            changes.append(change_match.group(1))
            in_reasoning = False
            continue

        reasoning_match = _REASONING_RE.match(line)
        if reasoning_match:
            in_reasoning = True
            if reasoning_match.group(1):
                reasoning_lines.append(reasoning_match.group(1))
            continue

        if in_reasoning:
            if not line.strip():
                in_reasoning = False
            else:
                reasoning_lines.append(line.strip())

    outcome = Outcome.DRY_RUN_REPORT if record.flags.analysis_only else Outcome.APPLIED
    first_line = next((line.strip() for line in text.splitlines() if line.strip()), "")
    return DispatchResult(
        outcome=outcome,
        summary=text.strip(),
        title=first_line.lstrip("#").strip()[:80],
        options=parse_options(text),
        files_modified=files,
        lines_changed=lines_changed,
        reasoning=" ".join(reasoning_lines),
        changes=changes,
    )


class AnthropicBackend:
    """Sends dispatches to Claude via the Anthropic API."""

    def __init__(
        self,
        model: str = DEFAULT_ANTHROPIC_MODEL,
        max_tokens: int = 8192,
        tree=None,
        client=None,
        max_retries: int = MAX_RETRIES,
        base_delay: float = BASE_DELAY,
        max_delay: float = MAX_DELAY,
    ):
        if client is None:
            load_dotenv()
            api_key = os.environ.get("ANTHROPIC_API_KEY")
            if not api_key:
                raise EnvironmentError(
                    "ANTHROPIC_API_KEY not set. Add it to your .env file or export it as an environment variable."
                )
            client = anthropic.Anthropic(api_key=api_key)
        self.client = client
        self.model = model or DEFAULT_ANTHROPIC_MODEL
        self.max_tokens = max_tokens
        self.tree = tree
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay

    def complete(self, prompt: str, system: str = SYSTEM_PROMPT) -> str:
        @retry_with_backoff(self.max_retries, self.base_delay, self.max_delay, label=self.model)
        def _call():
            return self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                system=system,
                messages=[{"role": "user", "content": prompt}],
            )

        try:
            response = _call()
        except Exception as e:
            raise RuntimeError(
                f"Anthropic API error on {self.model} after retries: {e}"
            ) from e

        text_parts = [
            block.text for block in response.content if block.type == "text"
        ]
        return "\n".join(text_parts)

    def execute(self, record) -> DispatchResult:
        prompt = render_prompt(record, tree=self.tree)
        logger.debug("Dispatching %s to %s (%d chars)", record.command.to_line(), self.model, len(prompt))
        return build_result(record, self.complete(prompt))


class OpenRouterBackend:
    """Any OpenRouter model through the OpenAI-compatible API."""

    def __init__(
        self,
        model: str = DEFAULT_OPENROUTER_MODEL,
        max_tokens: int = 8192,
        tree=None,
        client=None,
        max_retries: int = MAX_RETRIES,
        base_delay: float = BASE_DELAY,
        max_delay: float = MAX_DELAY,
    ):
        if client is None:
            load_dotenv()
            api_key = os.environ.get("OPENROUTER_API_KEY")
            if not api_key:
                raise EnvironmentError(
                    "OPENROUTER_API_KEY not set. Add it to your .env file or export it as an environment variable."
                )
            client = openai.OpenAI(api_key=api_key, base_url=OPENROUTER_BASE_URL)
        self.client = client
        self.model = model or DEFAULT_OPENROUTER_MODEL
        self.max_tokens = max_tokens
        self.tree = tree
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay

    def complete(self, prompt: str, system: str = SYSTEM_PROMPT) -> str:
        # OpenAI SDK: system prompt goes as first message, not a separate param
        messages = [
            {"role": "system", "content": system},
            {"role": "user", "content": prompt},
        ]

        @retry_with_backoff(self.max_retries, self.base_delay, self.max_delay, label=self.model)
        def _call():
            return self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                max_tokens=self.max_tokens,
            )

        try:
            response = _call()
        except Exception as e:
            raise RuntimeError(
                f"OpenRouter API error on {self.model} after retries: {e}"
            ) from e

        return response.choices[0].message.content or ""

    def execute(self, record) -> DispatchResult:
        prompt = render_prompt(record, tree=self.tree)
        logger.debug("Dispatching %s to %s (%d chars)", record.command.to_line(), self.model, len(prompt))
        return build_result(record, self.complete(prompt))


class ClipboardBackend:
    """Hands the rendered prompt to the user instead of calling a model."""

    def __init__(self, tree=None):
        self.tree = tree

    def execute(self, record) -> DispatchResult:
        prompt = render_prompt(record, tree=self.tree)
        copied = self._copy_to_clipboard(prompt)
        # A hand-off applies nothing itself.
        outcome = Outcome.DRY_RUN_REPORT
        if copied:
            summary = f"Copied prompt for {record.command.to_line()} to clipboard"
        else:
            summary = f"Built prompt for {record.command.to_line()}; clipboard unavailable"
        return DispatchResult(
            outcome=outcome,
            summary=summary,
            title=record.command.body,
            data={"prompt": prompt, "copied": copied, "handed_off": True},
        )

    def _copy_to_clipboard(self, text: str) -> bool:
        """Copy text to clipboard; return False if clipboard access fails."""
        try:
            import pyperclip

            pyperclip.copy(text)
            return True
        except Exception:
            return False


def make_backend(config, tree=None):
    """Build the backend named in config.yaml with its retry policy."""
    retry = {
        "max_retries": config.max_retries,
        "base_delay": config.retry_base_delay,
        "max_delay": config.retry_max_delay,
    }
    if config.backend == "anthropic":
        return AnthropicBackend(
            model=config.model or DEFAULT_ANTHROPIC_MODEL, max_tokens=config.max_tokens, tree=tree, **retry
        )
    if config.backend == "openrouter":
        return OpenRouterBackend(
            model=config.model or DEFAULT_OPENROUTER_MODEL, max_tokens=config.max_tokens, tree=tree, **retry
        )
    if config.backend == "clipboard":
        return ClipboardBackend(tree=tree)
    raise ValueError(f"Unknown backend '{config.backend}'. Available: anthropic, openrouter, clipboard")
