"""Modal dialogs for the Textual config panel."""

from __future__ import annotations

from typing import Any, Optional

from textual.app import ComposeResult
from textual.containers import Container, Horizontal
from textual.screen import ModalScreen
from textual.widgets import Button, Input, Static, Switch

from .validators import check_rule


class ChoiceScreen(ModalScreen[str]):
    """A titled question answered by one of ``CHOICES``; escape means cancel."""

    TITLE_TEXT = ""
    BODY_TEXT = ""
    # (label, result, button variant)
    CHOICES: list[tuple[str, str, Optional[str]]] = []

    BINDINGS = [("escape", "dismiss('cancel')", "Cancel")]

    def compose(self) -> ComposeResult:
        buttons = [
            Button(label, id=f"choice-{result}", variant=variant or "default")
            for label, result, variant in self.CHOICES
        ]
        buttons.append(Button("Cancel", id="choice-cancel"))
        yield Container(
            Static(self.TITLE_TEXT, classes="modal-title"),
            Static(self.BODY_TEXT, classes="modal-body"),
            Horizontal(*buttons, classes="modal-actions"),
            classes="modal-dialog modal-dialog--confirm",
        )

    def on_button_pressed(self, event: Button.Pressed) -> None:
        self.dismiss((event.button.id or "choice-cancel").removeprefix("choice-"))


class UnsavedChangesScreen(ChoiceScreen):
    TITLE_TEXT = "Unsaved changes"
    BODY_TEXT = "Save changes before exit?"
    CHOICES = [("Save", "save", "success"), ("Discard", "discard", "error")]


class ReloadConfirmScreen(ChoiceScreen):
    TITLE_TEXT = "Reload config?"
    BODY_TEXT = "Unsaved changes will be lost."
    CHOICES = [("Save", "save", None), ("Reload", "reload", "warning")]


class AddRuleScreen(ModalScreen[dict[str, Any] | None]):
    """Modal form for adding a new rule."""

    def __init__(self, suffix_chars: str) -> None:
        super().__init__()
        self._suffix_chars = suffix_chars

    def compose(self) -> ComposeResult:
        yield Container(
            Static("Add rule", classes="modal-title"),
            Static("", id="add-error", classes="modal-error"),
            Static("name", classes="form-label"),
            Input(placeholder="Jira", id="add-name"),
            Static("pattern", classes="form-label"),
            Input(placeholder=r"MM-(?P<id>\d+)", id="add-pattern"),
            Static("template", classes="form-label"),
            Input(placeholder="[MM-$id](https://example.com/MM-$id)", id="add-template"),
            Static("enabled", classes="form-label"),
            Switch(value=True, id="add-enabled"),
            Horizontal(
                Button("Add", id="add-confirm", variant="success"),
                Button("Cancel", id="add-cancel"),
                classes="modal-actions",
            ),
            classes="modal-dialog modal-dialog--form",
        )

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "add-cancel":
            self.dismiss(None)
            return
        if event.button.id != "add-confirm":
            return
        payload: dict[str, Any] = {
            "name": self.query_one("#add-name", Input).value.strip(),
            "pattern": self.query_one("#add-pattern", Input).value,
            "template": self.query_one("#add-template", Input).value,
            "disabled": not self.query_one("#add-enabled", Switch).value,
        }
        error = check_rule(payload, self._suffix_chars)
        if error:
            self.query_one("#add-error", Static).update(error)
            return
        self.dismiss(payload)


class DeleteRuleScreen(ModalScreen[bool]):
    """Confirm deletion of a rule."""

    def __init__(self, rule_name: str) -> None:
        super().__init__()
        self._rule_name = rule_name or "(unnamed rule)"

    def compose(self) -> ComposeResult:
        yield Container(
            Static("Delete rule?", classes="modal-title"),
            Static(self._rule_name, classes="modal-body"),
            Horizontal(
                Button("Delete", id="delete-rule-confirm", variant="error"),
                Button("Cancel", id="delete-rule-cancel"),
                classes="modal-actions",
            ),
            classes="modal-dialog modal-dialog--confirm",
        )

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "delete-rule-confirm":
            self.dismiss(True)
        else:
            self.dismiss(False)
