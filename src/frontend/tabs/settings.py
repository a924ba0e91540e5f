"""Settings tab implementation."""

from __future__ import annotations

from typing import Any, Optional

from textual import on
from textual.containers import Container, Horizontal, ScrollableContainer, Vertical
from textual.widgets import ContentSwitcher, DataTable, Input, Select, Static, Switch, TextArea

from core.compiler import DEFAULT_SUFFIX_CHARS
from ..validators import parse_admin_ids


class SettingsTab(Container):
    """Settings tab for editing the autolink flags and logging."""

    LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]

    SECTION_LABELS = [
        ("autolink", "Autolink", "Edits, admin command, boundaries"),
        ("logging", "Logging", "Console/file logging + redaction"),
    ]

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._loading_form = False
        self._current_section: Optional[str] = None
        self._table_ready = False

    def compose(self):
        with Vertical(id="settings-panel"):
            with Horizontal(id="settings-body"):
                with Container(id="settings-left"):
                    yield DataTable(id="settings-table", cursor_type="row")
                with Container(id="settings-right"):
                    with ContentSwitcher(id="settings-forms"):
                        with Container(id="settings-autolink"):
                            yield Static("Autolink", id="settings-title")
                            yield Static("enable_on_update", classes="form-label")
                            yield Switch(id="autolink-on-update")
                            yield Static("enable_admin_command", classes="form-label")
                            yield Switch(id="autolink-admin-command")
                            yield Static("admin_user_ids (comma-separated)", classes="form-label")
                            yield Input(placeholder="123456789, 987654321", id="autolink-admin-ids")
                            yield Static("non_word_suffix_chars", classes="form-label")
                            yield Input(placeholder=DEFAULT_SUFFIX_CHARS, id="autolink-suffix-chars")
                            yield Static("", id="autolink-error", classes="settings-error")

                        with ScrollableContainer(id="settings-logging"):
                            yield Static("Logging", id="settings-title")
                            yield Static("enabled", classes="form-label")
                            yield Switch(id="logging-enabled")
                            yield Static("level", classes="form-label")
                            yield Select(
                                [
                                    ("DEBUG", "DEBUG"),
                                    ("INFO", "INFO"),
                                    ("WARNING", "WARNING"),
                                    ("ERROR", "ERROR"),
                                ],
                                id="logging-level",
                                allow_blank=False,
                            )
                            yield Static("console", classes="form-label")
                            yield Switch(id="logging-console")
                            yield Static("file.enabled", classes="form-label")
                            yield Switch(id="logging-file-enabled")
                            yield Static("file.path", classes="form-label")
                            yield Input(placeholder="logs/autolinker.log", id="logging-file-path")
                            yield Static("file.max_bytes", classes="form-label")
                            yield Input(placeholder="5242880", id="logging-file-max-bytes")
                            yield Static("file.backup_count", classes="form-label")
                            yield Input(placeholder="5", id="logging-file-backup")
                            yield Static("redact.enabled", classes="form-label")
                            yield Switch(id="logging-redact-enabled")
                            yield Static("redact.patterns (one per line)", classes="form-label")
                            yield TextArea(id="logging-redact-patterns")
                            yield Static("", id="logging-error", classes="settings-error")

    def on_mount(self) -> None:
        table = self.query_one("#settings-table", DataTable)
        table.add_column("section", key="section", width=18)
        table.add_column("description", key="description", width=34)
        for key, label, description in self.SECTION_LABELS:
            table.add_row(label, description, key=key)
        table.zebra_stripes = True
        self._table_ready = True
        self._select_section("autolink")
        self.reload_from_config()

    def reload_from_config(self) -> None:
        self._loading_form = True
        self._load_autolink()
        self._load_logging()
        self._loading_form = False

    def on_data_table_row_selected(self, event: DataTable.RowSelected) -> None:
        section_id = self._coerce_row_key(event.row_key)
        self._select_section(section_id)

    def _select_section(self, section_id: str) -> None:
        self._current_section = section_id
        switcher = self.query_one("#settings-forms", ContentSwitcher)
        switcher.current = f"settings-{section_id.replace('_', '-')}"

    def _get_section(self, key: str) -> dict[str, Any]:
        data = self.app.config_state.data or {}
        section = data.get(key)
        if isinstance(section, dict):
            return section
        return {}

    def _get_value(self, key: str, default: Any) -> Any:
        data = self.app.config_state.data or {}
        return data.get(key, default)

    def _update_section(self, key: str, section: Any) -> None:
        self.app.update_config_section(key, section)

    def _load_autolink(self) -> None:
        admin_ids = self._get_value("admin_user_ids", "")
        if isinstance(admin_ids, list):
            admin_ids = ", ".join(str(item) for item in admin_ids)
        suffix_chars = self._get_value("non_word_suffix_chars", None)
        self.query_one("#autolink-on-update", Switch).value = bool(self._get_value("enable_on_update", False))
        self.query_one("#autolink-admin-command", Switch).value = bool(self._get_value("enable_admin_command", False))
        self.query_one("#autolink-admin-ids", Input).value = str(admin_ids or "")
        self.query_one("#autolink-suffix-chars", Input).value = (
            DEFAULT_SUFFIX_CHARS if suffix_chars is None else str(suffix_chars)
        )
        self._set_error("autolink-error", "")

    # widget id -> (key path under "logging", default)
    LOGGING_FIELDS = {
        "logging-enabled": (("enabled",), False),
        "logging-level": (("level",), "INFO"),
        "logging-console": (("console",), True),
        "logging-file-enabled": (("file", "enabled"), False),
        "logging-file-path": (("file", "path"), "logs/autolinker.log"),
        "logging-file-max-bytes": (("file", "max_bytes"), 5 * 1024 * 1024),
        "logging-file-backup": (("file", "backup_count"), 5),
        "logging-redact-enabled": (("redact", "enabled"), False),
        "logging-redact-patterns": (("redact", "patterns"), []),
    }
    INT_FIELDS = {"logging-file-max-bytes", "logging-file-backup"}

    def _load_logging(self) -> None:
        logging = self._get_section("logging")
        for widget_id, (path, default) in self.LOGGING_FIELDS.items():
            value = self._read_path(logging, path, default)
            if widget_id == "logging-level":
                self._set_select_value(f"#{widget_id}", str(value), self.LOG_LEVELS, "logging-error")
                continue
            widget = self.query_one(f"#{widget_id}")
            if isinstance(widget, Switch):
                widget.value = bool(value)
            elif isinstance(widget, TextArea):
                widget.text = "\n".join(value or [])
            else:
                widget.value = str(value)
        self._apply_logging_state()

    def _set_select_value(self, selector: str, value: str, allowed: list[str], error_id: str) -> None:
        select = self.query_one(selector, Select)
        if value in allowed:
            select.value = value
            self._set_error(error_id, "")
        else:
            select.value = allowed[0] if allowed else Select.BLANK
            self._set_error(error_id, f"Invalid value: {value}")

    def _set_error(self, error_id: str, message: str) -> None:
        self.query_one(f"#{error_id}", Static).update(message)

    def _apply_logging_state(self) -> None:
        file_enabled = self.query_one("#logging-file-enabled", Switch).value
        for widget_id in ("logging-file-path", "logging-file-max-bytes", "logging-file-backup"):
            self.query_one(f"#{widget_id}", Input).disabled = not file_enabled
        redact_enabled = self.query_one("#logging-redact-enabled", Switch).value
        self.query_one("#logging-redact-patterns", TextArea).disabled = not redact_enabled

    @on(Switch.Changed, "#autolink-on-update")
    def _on_autolink_on_update(self, event: Switch.Changed) -> None:
        if self._loading_form:
            return
        self._update_section("enable_on_update", bool(event.value))

    @on(Switch.Changed, "#autolink-admin-command")
    def _on_autolink_admin_command(self, event: Switch.Changed) -> None:
        if self._loading_form:
            return
        self._update_section("enable_admin_command", bool(event.value))

    @on(Input.Changed, "#autolink-admin-ids")
    def _on_autolink_admin_ids(self, event: Input.Changed) -> None:
        if self._loading_form:
            return
        ids = parse_admin_ids(event.value)
        if any(not item.isdigit() for item in ids):
            self._set_error("autolink-error", "Telegram user ids are numeric")
            return
        self._set_error("autolink-error", "")
        self._update_section("admin_user_ids", ", ".join(ids))

    @on(Input.Changed, "#autolink-suffix-chars")
    def _on_autolink_suffix_chars(self, event: Input.Changed) -> None:
        if self._loading_form:
            return
        if any(char.isspace() for char in event.value):
            self._set_error("autolink-error", "Whitespace always ends a match; list punctuation only")
            return
        self._set_error("autolink-error", "")
        self._update_section("non_word_suffix_chars", event.value)

    @on(Switch.Changed, "#settings-logging Switch")
    def _on_logging_switch(self, event: Switch.Changed) -> None:
        if self._loading_form:
            return
        self._store_logging_value(event.switch.id, bool(event.value))
        self._apply_logging_state()

    @on(Select.Changed, "#logging-level")
    def _on_logging_level(self, event: Select.Changed) -> None:
        if self._loading_form or event.value is Select.BLANK:
            return
        self._set_error("logging-error", "")
        self._store_logging_value("logging-level", event.value)

    @on(Input.Changed, "#settings-logging Input")
    def _on_logging_input(self, event: Input.Changed) -> None:
        if self._loading_form:
            return
        widget_id = event.input.id
        if widget_id not in self.INT_FIELDS:
            self._store_logging_value(widget_id, event.value)
            return
        parsed = self._parse_int(event.value, "logging-error")
        if parsed is not None:
            self._store_logging_value(widget_id, parsed)

    @on(TextArea.Changed, "#logging-redact-patterns")
    def _on_logging_redact_patterns(self, event: TextArea.Changed) -> None:
        if self._loading_form:
            return
        patterns = [line.strip() for line in event.text_area.text.splitlines() if line.strip()]
        self._store_logging_value("logging-redact-patterns", patterns)

    def _store_logging_value(self, widget_id: Optional[str], value: Any) -> None:
        if widget_id not in self.LOGGING_FIELDS:
            return
        path, _default = self.LOGGING_FIELDS[widget_id]
        logging = dict(self._get_section("logging"))
        target = logging
        for key in path[:-1]:
            nested = dict(self._get_subdict(target, key))
            target[key] = nested
            target = nested
        target[path[-1]] = value
        self._update_section("logging", logging)

    def _parse_int(self, value: str, error_id: str) -> Optional[int]:
        stripped = value.strip()
        if not stripped:
            self._set_error(error_id, "")
            return None
        if not stripped.isdigit():
            self._set_error(error_id, "Enter a non-negative integer")
            return None
        self._set_error(error_id, "")
        return int(stripped)

    @staticmethod
    def _read_path(section: dict[str, Any], path: tuple[str, ...], default: Any) -> Any:
        current: Any = section
        for key in path:
            if not isinstance(current, dict) or key not in current:
                return default
            current = current[key]
        return current

    @staticmethod
    def _coerce_row_key(value: Any) -> str:
        if hasattr(value, "value"):
            return str(value.value)
        return str(value)

    @staticmethod
    def _get_subdict(parent: dict[str, Any], key: str) -> dict[str, Any]:
        value = parent.get(key)
        if isinstance(value, dict):
            return value
        return {}
