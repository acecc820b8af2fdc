"""Interactive configuration wizard.

Walks the field descriptor table in order, prompting for each field until
its value validates (or an optional field is left empty), then renders the
collected partial configuration as YAML and writes it to the declarative
file on confirmation.

Each field runs its own small state machine::

    PROMPTING -> VALIDATING -> ACCEPTED
        |            |
        v            v
     SKIPPED      RETRYING -> PROMPTING

The only way out is ACCEPTED (a valid value) or SKIPPED (empty answer on an
optional field); there is no backtracking across fields.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import logging
from pathlib import Path
import shlex
import sys
from typing import TYPE_CHECKING, Any

import yaml

from contextgw.config.schema import FIELDS, FieldKind, FieldSpec, FrozenConfig, validate
from contextgw.config.utils import CONFIG_FILENAME, get_config_path
from contextgw.errors import ConfigFileError, ConfigValidationError, ValidationIssue

if TYPE_CHECKING:
    from collections.abc import Callable

log = logging.getLogger(__name__)

_YES = {"y", "yes"}


class WizardState(str, Enum):
    """States of a single field prompt."""

    PROMPTING = "prompting"
    VALIDATING = "validating"
    ACCEPTED = "accepted"
    RETRYING = "retrying"
    SKIPPED = "skipped"


_TERMINAL = frozenset({WizardState.ACCEPTED, WizardState.SKIPPED})


def _print_err(message: str) -> None:
    print(message, file=sys.stderr)


def prompt_text(spec: FieldSpec) -> str:
    """Render the prompt line for a field from its description."""
    text = f"{spec.name.upper()}: {spec.description}"
    if spec.kind is FieldKind.CHOICE and spec.choices:
        text += f" [{'|'.join(spec.choices)}]"
    if spec.is_boolean:
        text += " (y/n)"
    elif spec.optional:
        text += " (optional)"
    return text + " "


def parse_answer(spec: FieldSpec, raw: str) -> Any:
    """Turn a raw answer into a candidate value for the field's kind.

    Sequences are split on commas with segments trimmed and empty ones
    dropped. A server command typed without commas is tokenized like a
    shell line instead (``npx -y "@mcp/server echo"``).

    Raises:
        ValueError: If the answer cannot be tokenized (e.g. unbalanced quotes).
    """
    if spec.is_boolean:
        return raw.strip().lower() in _YES
    if spec.kind is FieldKind.COMMAND and "," not in raw:
        return shlex.split(raw)
    if spec.is_sequence:
        return [item.strip() for item in raw.split(",") if item.strip()]
    return raw.strip()


@dataclass
class FieldPrompt:
    """Prompt/validate/retry loop for one field.

    ``step`` performs exactly one transition, which keeps the loop observable
    in tests; ``run`` drives it to a terminal state.
    """

    spec: FieldSpec
    ask: Callable[[str], str]
    report: Callable[[str], None] = _print_err
    state: WizardState = WizardState.PROMPTING
    attempts: int = 0
    value: Any = None
    issues: tuple[ValidationIssue, ...] = ()
    _raw: str = field(default="", repr=False)

    @property
    def done(self) -> bool:
        return self.state in _TERMINAL

    def step(self) -> WizardState:
        if self.state is WizardState.PROMPTING:
            self.attempts += 1
            self._raw = self.ask(prompt_text(self.spec))
            if self.spec.optional and not self._raw.strip():
                self.state = WizardState.SKIPPED
            else:
                self.state = WizardState.VALIDATING
        elif self.state is WizardState.VALIDATING:
            try:
                candidate = parse_answer(self.spec, self._raw)
                self.value = self.spec.check(candidate)
            except ConfigValidationError as e:
                self.issues = e.issues
                self.state = WizardState.RETRYING
            except ValueError as e:
                self.issues = (ValidationIssue(self.spec.key, str(e)),)
                self.state = WizardState.RETRYING
            else:
                self.issues = ()
                self.state = WizardState.ACCEPTED
        elif self.state is WizardState.RETRYING:
            reasons = "; ".join(issue.message for issue in self.issues)
            self.report(f"Invalid input for {self.spec.key}: {reasons}")
            self.state = WizardState.PROMPTING
        return self.state

    def run(self) -> Any:
        """Prompt until the field is accepted or skipped.

        Returns:
            The normalized value, or None when an optional field was skipped.
        """
        while not self.done:
            self.step()
        log.debug(
            "Field %s %s after %d attempt(s)",
            self.spec.key,
            self.state.value,
            self.attempts,
        )
        return self.value if self.state is WizardState.ACCEPTED else None


def render_document(partial: dict[str, Any]) -> str:
    """Render a partial configuration in the declarative file format."""
    return yaml.safe_dump(partial, sort_keys=False, allow_unicode=True)


@dataclass(frozen=True)
class WizardResult:
    """Outcome of a wizard run."""

    partial: dict[str, Any]
    config: FrozenConfig
    document: str
    saved: bool
    path: Path


class Wizard:
    """Builds a configuration file interactively.

    All terminal IO goes through the injected callables so the wizard can be
    driven by tests or other front ends.
    """

    def __init__(
        self,
        *,
        ask: Callable[[str], str] = input,
        echo: Callable[[str], None] = print,
        report: Callable[[str], None] = _print_err,
        confirm: Callable[[str], bool] | None = None,
        path: str | Path | None = None,
    ) -> None:
        self.ask = ask
        self.echo = echo
        self.report = report
        self.confirm = confirm or self._confirm
        self.path = Path(path) if path is not None else get_config_path()

    def _confirm(self, question: str) -> bool:
        return self.ask(f"{question} (y/n) ").strip().lower() in _YES

    def _prompt(self, spec: FieldSpec) -> Any:
        return FieldPrompt(spec, ask=self.ask, report=self.report).run()

    def collect(self) -> dict[str, Any]:
        """Prompt for every field in declaration order."""
        partial: dict[str, Any] = {}
        for spec in FIELDS:
            if spec.is_record:
                self.echo("--- Server Metadata (optional) ---")
                nested = {}
                for child in spec.children:
                    answer = self._prompt(child)
                    if answer not in (None, ""):
                        nested[child.name] = answer
                if nested:
                    partial[spec.name] = nested
                continue
            answer = self._prompt(spec)
            if answer is not None:
                partial[spec.name] = answer
        return partial

    def run(self) -> WizardResult:
        """Collect, render, confirm and (optionally) persist the file.

        Raises:
            ConfigFileError: If the confirmed file cannot be written.
        """
        self.echo("Welcome to the gateway configuration wizard!")
        self.echo("Please follow the prompts to create your configuration file.")

        partial = self.collect()
        config = validate(partial)
        document = render_document(partial)

        self.echo("\nConfiguration complete! Here is your generated config:")
        self.echo(document)

        saved = self.confirm(f"Do you want to save this configuration to {CONFIG_FILENAME}?")
        if saved:
            try:
                self.path.write_text(document, encoding="utf-8")
            except OSError as e:
                raise ConfigFileError(
                    f"Could not write {self.path}: {e}", path=self.path
                ) from e
            log.info("Wrote configuration to %s", self.path)
            self.echo("Configuration saved successfully!")
        else:
            self.echo("Configuration not saved.")
        return WizardResult(
            partial=partial,
            config=config,
            document=document,
            saved=saved,
            path=self.path,
        )
