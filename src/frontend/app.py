"""Textual config panel for autolinker's config.json."""

from __future__ import annotations

import json
from typing import Any

from rich.text import Text
from textual.app import App, ComposeResult
from textual.containers import Center, Container, Horizontal, Vertical
from textual.widgets import Button, ContentSwitcher, Footer, Static, Tab, Tabs

from adapters.json_store import read_config, write_config
from core.compiler import DEFAULT_SUFFIX_CHARS
from .constants import CONFIG_PATH, TELEGRAM_BLUE
from .modals import ReloadConfirmScreen, UnsavedChangesScreen
from .state import ConfigState
from .tabs.rules import RulesTab
from .tabs.settings import SettingsTab
from .validators import check_rule

TAB_IDS = ("rules", "settings")


class ConfigPanelApp(App):
    """Edits rules and settings in memory; ctrl+s writes config.json."""

    BINDINGS = [
        ("ctrl+s", "save_config", "Save"),
        ("ctrl+r", "reload_config", "Reload"),
        ("f1", "show_tab('rules')", "Rules"),
        ("f2", "show_tab('settings')", "Settings"),
        ("q", "request_quit", "Quit"),
        ("ctrl+c", "request_quit", "Quit"),
    ]

    CSS_PATH = "app.tcss"

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.config_state = ConfigState()

    def compose(self) -> ComposeResult:
        with Container(id="header"):
            with Horizontal(id="header-row"):
                with Vertical(id="header-left"):
                    yield Static(
                        Text.assemble(("AUTO", TELEGRAM_BLUE), ("LINKER > Config Panel", "bold")),
                        id="title",
                    )
                    yield Static(str(CONFIG_PATH), classes="subtle")
                with Vertical(id="header-right"):
                    yield Static("", id="header-rules", classes="subtle")
                    yield Static("", id="header-status")
                    yield Horizontal(
                        Button("Save", id="save-btn"),
                        Button("Reload", id="reload-btn"),
                        id="header-actions",
                    )

        with Container(id="tabs-bar"):
            with Center(id="tabs-center"):
                yield Tabs(Tab("Rules", id="rules"), Tab("Settings", id="settings"), id="tabs")

        with ContentSwitcher(id="content", initial="rules"):
            yield RulesTab(id="rules")
            yield SettingsTab(id="settings")
        yield Footer()

    def on_mount(self) -> None:
        self._load_config()

    def on_tabs_tab_activated(self, event: Tabs.TabActivated) -> None:
        if event.tab.id in TAB_IDS:
            self.query_one("#content", ContentSwitcher).current = event.tab.id

    def action_show_tab(self, tab_id: str) -> None:
        self.query_one("#tabs", Tabs).active = tab_id

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "save-btn":
            self.action_save_config()
        elif event.button.id == "reload-btn":
            self.action_reload_config()

    def action_save_config(self) -> None:
        self._save_config()

    def action_reload_config(self) -> None:
        if self.config_state.dirty:
            self.push_screen(ReloadConfirmScreen(), self._handle_reload_choice)
        else:
            self._load_config()

    def action_request_quit(self) -> None:
        if self.config_state.dirty:
            self.push_screen(UnsavedChangesScreen(), self._handle_exit_choice)
        else:
            self.exit()

    def _handle_exit_choice(self, choice: str | None) -> None:
        if choice == "discard" or (choice == "save" and self._save_config()):
            self.exit()

    def _handle_reload_choice(self, choice: str | None) -> None:
        if choice == "reload" or (choice == "save" and self._save_config()):
            self._load_config()

    def _load_config(self) -> None:
        state = self.config_state
        state.dirty = False
        try:
            state.data = read_config(CONFIG_PATH)
            state.data.setdefault("rules", [])
            state.error = None
        except json.JSONDecodeError as exc:
            state.data = None
            state.error = f"{CONFIG_PATH.name} line {exc.lineno}: {exc.msg}"
        except (OSError, ValueError) as exc:
            state.data = None
            state.error = str(exc)
        self._refresh_header()
        for tab in self.query("RulesTab, SettingsTab"):
            tab.reload_from_config()

    def _save_config(self) -> bool:
        state = self.config_state
        if state.data is None:
            state.error = "Nothing to save"
            self._refresh_header()
            return False
        try:
            write_config(CONFIG_PATH, state.data)
        except OSError as exc:
            state.error = f"save failed: {exc.strerror or exc}"
            self._refresh_header()
            return False
        state.dirty = False
        state.error = None
        self._refresh_header()
        return True

    def mark_dirty(self) -> None:
        self.config_state.dirty = True
        self._refresh_header()

    def update_config_section(self, section: str, value: Any) -> None:
        """Update a top-level config key in memory and mark dirty."""
        if self.config_state.data is None:
            self.config_state.data = {"rules": []}
        self.config_state.data[section] = value
        self.mark_dirty()

    def _rule_summary(self) -> str:
        data = self.config_state.data or {}
        suffix_chars = data.get("non_word_suffix_chars")
        if suffix_chars is None:
            suffix_chars = DEFAULT_SUFFIX_CHARS
        rules = [rule for rule in data.get("rules") or [] if isinstance(rule, dict)]
        disabled = sum(1 for rule in rules if rule.get("disabled"))
        invalid = sum(1 for rule in rules if check_rule(rule, str(suffix_chars)))
        summary = f"rules: {self.config_state.rule_count}"
        if disabled:
            summary += f", {disabled} disabled"
        if invalid:
            summary += f", {invalid} invalid"
        return summary

    def _refresh_header(self) -> None:
        state = self.config_state
        status = self.query_one("#header-status", Static)
        self.query_one("#header-rules", Static).update(self._rule_summary())

        status.remove_class("status-loaded", "status-modified", "status-error")
        if state.error:
            status.update(Text(f"config: {state.error}"))
            status.add_class("status-error")
        elif state.dirty:
            status.update("config: modified *")
            status.add_class("status-modified")
        else:
            status.update("config: loaded")
            status.add_class("status-loaded")

        self.query_one("#save-btn", Button).disabled = state.data is None or not state.dirty
