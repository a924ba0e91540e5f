"""Rules tab implementation."""

from __future__ import annotations

from typing import Any, Iterable, Optional

from rich.text import Text
from textual import on
from textual.containers import Container, Horizontal, Vertical
from textual.widgets import Button, DataTable, Input, Static, Switch, TextArea

from core.compiler import DEFAULT_SUFFIX_CHARS
from core.commands import describe_rule_test
from core.rules import Rule
from ..modals import AddRuleScreen, DeleteRuleScreen
from ..validators import check_rule, parse_scope_lines

# Switch id -> rule key.
FLAG_SWITCHES = {
    "rule-word-match": "word_match",
    "rule-no-prefix": "disable_non_word_prefix",
    "rule-no-suffix": "disable_non_word_suffix",
    "rule-bot-posts": "process_bot_posts",
}


class RulesTab(Container):
    """Rules tab for editing config.rules and testing rules."""

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._loading_form = False
        self._current_row_key: Optional[str] = None
        self._table_ready = False

    def compose(self):
        with Vertical(id="rules-panel"):
            with Horizontal(id="rules-body"):
                with Container(id="rules-left"):
                    yield DataTable(id="rules-table", cursor_type="row")
                with Container(id="rules-right"):
                    yield Static("Rule editor", id="rules-title")
                    yield Static("name", classes="form-label")
                    yield Input(placeholder="Rule name", id="rule-name")
                    yield Static("enabled", classes="form-label")
                    yield Switch(value=True, id="rule-enabled")
                    yield Static("pattern", classes="form-label")
                    yield Input(placeholder=r"MM-(?P<id>\d+)", id="rule-pattern")
                    yield Static("template", classes="form-label")
                    yield Input(placeholder="[MM-$id](https://example.com/MM-$id)", id="rule-template")
                    yield Static("", id="rule-error", classes="settings-error")
                    yield Static("scope (team or team/channel, one per line)", classes="form-label")
                    yield TextArea(id="rule-scope")
                    with Horizontal(id="rules-flags"):
                        with Vertical():
                            yield Static("word match", classes="form-label")
                            yield Switch(id="rule-word-match")
                        with Vertical():
                            yield Static("no prefix", classes="form-label")
                            yield Switch(id="rule-no-prefix")
                        with Vertical():
                            yield Static("no suffix", classes="form-label")
                            yield Switch(id="rule-no-suffix")
                        with Vertical():
                            yield Static("bot posts", classes="form-label")
                            yield Switch(id="rule-bot-posts")
                    yield Static("Rule tester", id="rules-test-title")
                    yield TextArea(id="rule-test-text", placeholder="Paste text to test against rules")
                    with Horizontal(id="rules-test-actions"):
                        yield Button("Test", id="rule-test", variant="primary")
                    yield Static("", id="rule-test-result")
            with Horizontal(id="rules-actions"):
                yield Button("Add rule", id="add-rule", variant="success")
                yield Button("Duplicate rule", id="duplicate-rule")
                yield Button("Delete rule", id="delete-rule", variant="error")

    def on_mount(self) -> None:
        table = self.query_one("#rules-table", DataTable)
        table.add_column("#", key="index", width=4)
        table.add_column("enabled", key="enabled", width=8)
        table.add_column("name", key="name", width=30)
        table.add_column("badges", key="badges", width=20)
        table.zebra_stripes = True
        self.query_one("#rules-test-actions").styles.height = 3
        self._table_ready = True
        self.reload_from_config()
        self._set_form_state(None)

    def reload_from_config(self) -> None:
        if not self._table_ready:
            return
        table = self.query_one("#rules-table", DataTable)
        table.clear()
        for index, rule, badges in self._iter_rules():
            enabled_label = "no" if rule.get("disabled", False) else "yes"
            table.add_row(str(index + 1), enabled_label, Rule.from_config(rule).display_name, badges, key=str(index))
        self._update_action_state()

    def _iter_rules(self) -> Iterable[tuple[int, dict[str, Any], str]]:
        for index, rule in enumerate(self._get_rules()):
            yield index, rule, self._badge_for_rule(rule)

    def _badge_for_rule(self, rule: dict[str, Any]) -> str:
        badges = []
        if rule.get("word_match"):
            badges.append("word")
        if rule.get("scope"):
            badges.append(f"scope:{len(rule['scope'])}")
        if rule.get("process_bot_posts"):
            badges.append("bots")
        if check_rule(rule, self._suffix_chars()):
            badges.append("error")
        return " ".join(badges)

    def _suffix_chars(self) -> str:
        data = self.app.config_state.data or {}
        value = data.get("non_word_suffix_chars")
        return DEFAULT_SUFFIX_CHARS if value is None else str(value)

    def _get_rules(self) -> list[dict[str, Any]]:
        data = self.app.config_state.data or {}
        rules = data.get("rules")
        if isinstance(rules, list):
            return rules
        return []

    def _set_rules(self, rules: list[dict[str, Any]]) -> None:
        self.app.update_config_section("rules", rules)

    def _current_rule(self) -> Optional[tuple[int, list[dict[str, Any]]]]:
        index = self._current_index()
        if index is None:
            return None
        rules = self._get_rules()
        if index >= len(rules):
            return None
        return index, rules

    def _update_action_state(self) -> None:
        delete_btn = self.query_one("#delete-rule", Button)
        duplicate_btn = self.query_one("#duplicate-rule", Button)
        has_selection = self._current_row_key is not None
        delete_btn.disabled = not has_selection
        duplicate_btn.disabled = not has_selection

    def on_data_table_row_selected(self, event: DataTable.RowSelected) -> None:
        self._current_row_key = self._coerce_row_key(event.row_key)
        self._set_form_state(self._current_row_key)
        self._update_action_state()

    @on(Input.Changed, "#rule-name")
    def _on_name_changed(self, event: Input.Changed) -> None:
        if self._loading_form:
            return
        self._update_field("name", event.value)

    @on(Switch.Changed, "#rule-enabled")
    def _on_enabled_changed(self, event: Switch.Changed) -> None:
        if self._loading_form:
            return
        current = self._current_rule()
        if current is None:
            return
        index, rules = current
        rules[index]["disabled"] = not event.value
        self._set_rules(rules)
        self._update_table_cell(index, "enabled", "yes" if event.value else "no")

    @on(Input.Changed, "#rule-pattern")
    def _on_pattern_changed(self, event: Input.Changed) -> None:
        if self._loading_form:
            return
        self._update_field("pattern", event.value)

    @on(Input.Changed, "#rule-template")
    def _on_template_changed(self, event: Input.Changed) -> None:
        if self._loading_form:
            return
        self._update_field("template", event.value)

    @on(TextArea.Changed, "#rule-scope")
    def _on_scope_changed(self, event: TextArea.Changed) -> None:
        if self._loading_form:
            return
        info = parse_scope_lines(event.text_area.text)
        self.query_one("#rule-error", Static).update(info.error or "")
        if info.error:
            return
        self._update_field("scope", info.entries)

    @on(Switch.Changed)
    def _on_flag_changed(self, event: Switch.Changed) -> None:
        if self._loading_form:
            return
        key = FLAG_SWITCHES.get(event.switch.id or "")
        if key is not None:
            self._update_field(key, bool(event.value))

    def _update_field(self, field: str, value: Any) -> None:
        current = self._current_rule()
        if current is None:
            return
        index, rules = current
        rules[index][field] = value
        self._set_rules(rules)
        self._update_table_cell(index, "name", Rule.from_config(rules[index]).display_name)
        self._update_table_cell(index, "badges", self._badge_for_rule(rules[index]))
        if field in ("pattern", "template"):
            self._show_rule_error(rules[index])

    def _show_rule_error(self, rule: dict[str, Any]) -> None:
        error = check_rule(rule, self._suffix_chars())
        self.query_one("#rule-error", Static).update(Text(error or ""))

    @on(Button.Pressed, "#add-rule")
    def _on_add_rule(self) -> None:
        self.app.push_screen(AddRuleScreen(self._suffix_chars()), self._handle_add_rule)

    def _handle_add_rule(self, payload: dict[str, Any] | None) -> None:
        if payload is None:
            return
        rules = self._get_rules()
        rules.append(Rule.from_config(payload).to_config())
        self._set_rules(rules)
        self.reload_from_config()
        self._select_row(len(rules) - 1)

    @on(Button.Pressed, "#duplicate-rule")
    def _on_duplicate_rule(self) -> None:
        current = self._current_rule()
        if current is None:
            return
        index, rules = current
        rule = dict(rules[index])
        name = rule.get("name", "Rule") or "Rule"
        rule["name"] = f"{name} (copy)"
        rules.append(rule)
        self._set_rules(rules)
        self.reload_from_config()
        self._select_row(len(rules) - 1)

    @on(Button.Pressed, "#delete-rule")
    def _on_delete_rule(self) -> None:
        current = self._current_rule()
        if current is None:
            return
        index, rules = current
        self.app.push_screen(DeleteRuleScreen(rules[index].get("name", "")), self._handle_delete_rule)

    def _handle_delete_rule(self, confirmed: bool | None) -> None:
        if not confirmed:
            return
        current = self._current_rule()
        if current is None:
            return
        index, rules = current
        rules.pop(index)
        self._set_rules(rules)
        self._current_row_key = None
        self.reload_from_config()
        self._set_form_state(None)

    @on(Button.Pressed, "#rule-test")
    def _on_test_rule(self) -> None:
        test_text = self.query_one("#rule-test-text", TextArea).text
        result = self.query_one("#rule-test-result", Static)
        if not test_text.strip():
            result.update("Add test text to run.")
            return
        # The selected rule alone, otherwise every rule in application order.
        current = self._current_rule()
        if current is not None:
            index, rules = current
            raw_rules = [rules[index]]
        else:
            raw_rules = self._get_rules()
        if not raw_rules:
            result.update("No rules configured.")
            return
        report = describe_rule_test([Rule.from_config(raw) for raw in raw_rules], test_text, self._suffix_chars())
        result.update(Text(report))

    def _set_form_state(self, row_key: Optional[str]) -> None:
        self._loading_form = True
        name_input = self.query_one("#rule-name", Input)
        enabled_toggle = self.query_one("#rule-enabled", Switch)
        pattern_input = self.query_one("#rule-pattern", Input)
        template_input = self.query_one("#rule-template", Input)
        scope_input = self.query_one("#rule-scope", TextArea)
        error = self.query_one("#rule-error", Static)
        widgets = [name_input, enabled_toggle, pattern_input, template_input, scope_input]
        widgets.extend(self.query_one(f"#{switch_id}", Switch) for switch_id in FLAG_SWITCHES)
        if row_key is None:
            name_input.value = ""
            enabled_toggle.value = False
            pattern_input.value = ""
            template_input.value = ""
            scope_input.text = ""
            for switch_id in FLAG_SWITCHES:
                self.query_one(f"#{switch_id}", Switch).value = False
            error.update("")
            for widget in widgets:
                widget.disabled = True
        else:
            index = int(row_key)
            rules = self._get_rules()
            if index >= len(rules):
                self._loading_form = False
                return
            rule = rules[index]
            name_input.value = rule.get("name", "")
            enabled_toggle.value = not rule.get("disabled", False)
            pattern_input.value = rule.get("pattern", "")
            template_input.value = rule.get("template", "")
            scope_input.text = "\n".join(Rule.from_config(rule).scope)
            for switch_id, key in FLAG_SWITCHES.items():
                self.query_one(f"#{switch_id}", Switch).value = bool(rule.get(key, False))
            for widget in widgets:
                widget.disabled = False
            self._show_rule_error(rule)
        self._loading_form = False

    def _select_row(self, index: int) -> None:
        table = self.query_one("#rules-table", DataTable)
        try:
            table.move_cursor(row=index)
        except Exception:
            return
        self._current_row_key = str(index)
        self._set_form_state(self._current_row_key)
        self._update_action_state()

    def _update_table_cell(self, index: int, column_key: str, value: Any) -> None:
        table = self.query_one("#rules-table", DataTable)
        row_key = str(index)
        try:
            table.get_row(row_key)
        except Exception:
            self.reload_from_config()
            return
        table.update_cell(row_key, column_key, value)

    def _current_index(self) -> Optional[int]:
        if self._current_row_key is None:
            return None
        try:
            return int(self._current_row_key)
        except ValueError:
            return None

    @staticmethod
    def _coerce_row_key(value: Any) -> str:
        if hasattr(value, "value"):
            return str(value.value)
        return str(value)
