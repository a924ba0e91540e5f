"""`/autolink` administration command.

Rules are addressed by "link refs": either their 1-based number in the
``/autolink list`` output, or a substring of their name. Mutating commands
require the ref to resolve to exactly one rule.
"""

from __future__ import annotations

from dataclasses import replace
import logging
import re
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from core.compiler import DEFAULT_SUFFIX_CHARS, compile_rule
from core.config import RuleRegistry
from core.errors import AutolinkError, CompileError, ResolutionError
from core.ports import RuleStore, UserResolver
from core.rules import Rule, scope_entry_error, sorted_by_display_name
from core.substitution import replace as apply_rule

LOGGER = logging.getLogger(__name__)

COMMAND = "/autolink"

HELP_TEXT = (
    "###### Autolink Administration\n"
    "<linkref> is either the Name of a link, or its number in the `/autolink list` output. "
    "A partial Name can be specified, but some commands require it to be uniquely resolved.\n"
    "* `/autolink add <name>` - add a new link, named <name>.\n"
    "* `/autolink delete <linkref>` - delete a link.\n"
    "* `/autolink disable <linkref>` - disable a link.\n"
    "* `/autolink enable <linkref>` - enable a link.\n"
    "* `/autolink list <linkref>` - list a specific link.\n"
    "* `/autolink list` - list all configured links.\n"
    "* `/autolink set <linkref> <field> value...` - sets a link's field to a value. The entire command "
    "line after <field> is used for the value, unescaped, leading/trailing whitespace trimmed.\n"
    "* `/autolink test <linkref> test-text...` - test a link on a sample.\n"
    "\n"
    "Example:\n"
    "```\n"
    "/autolink add Visa\n"
    "/autolink disable Visa\n"
    "/autolink set Visa Pattern (?P<VISA>(?P<part1>4\\d{3})[ -]?(?P<part2>\\d{4})[ -]?"
    "(?P<part3>\\d{4})[ -]?(?P<LastFour>[0-9]{4}))\n"
    "/autolink set Visa Template VISA XXXX-XXXX-XXXX-$LastFour\n"
    "/autolink set Visa WordMatch true\n"
    "/autolink set Visa Scope team/townsquare\n"
    "/autolink test Vi 4356-7891-2345-1111 -- (4111222233334444)\n"
    "/autolink enable Visa\n"
    "```\n"
)

NOT_AUTHORIZED_TEXT = (
    "`/autolink` commands can only be executed by a system administrator or `autolink` plugin admins."
)

# Command field name -> Rule attribute.
TEXT_FIELDS = {"Name": "name", "Pattern": "pattern", "Template": "template"}
BOOL_FIELDS = {
    "Disabled": "disabled",
    "DisableNonWordPrefix": "disable_non_word_prefix",
    "DisableNonWordSuffix": "disable_non_word_suffix",
    "WordMatch": "word_match",
    "ProcessBotPosts": "process_bot_posts",
}
SETTABLE_FIELDS = [
    "Name",
    "Disabled",
    "Pattern",
    "Template",
    "Scope",
    "DisableNonWordPrefix",
    "DisableNonWordSuffix",
    "WordMatch",
    "ProcessBotPosts",
]

_TOKEN_RE = re.compile(r"\s*\S+")


class CommandError(AutolinkError):
    """User-facing command failure; the message is shown as the reply."""


def parse_bool_arg(value: str) -> bool:
    lowered = value.lower()
    if lowered in ("true", "on"):
        return True
    if lowered in ("false", "off"):
        return False
    raise CommandError(f"Not a bool, {value!r}")


def rest_after(text: str, tokens: int) -> str:
    """Return ``text`` after its first ``tokens`` words, stripped, unescaped."""

    position = 0
    for _ in range(tokens):
        match = _TOKEN_RE.match(text, position)
        if match is None:
            return ""
        position = match.end()
    return text[position:].strip()


class AutolinkCommands:
    """Executes ``/autolink`` commands against a rule store and registry."""

    def __init__(
        self,
        registry: RuleRegistry,
        store: RuleStore,
        users: Optional[UserResolver] = None,
    ) -> None:
        self.registry = registry
        self.store = store
        self.users = users
        self._handlers: Dict[str, Callable[[str, List[str]], str]] = {
            "help": self._help,
            "list": self._list,
            "delete": self._delete,
            "disable": self._disable,
            "enable": self._enable,
            "add": self._add,
            "set": self._set,
            "test": self._test,
        }

    def is_authorized(self, user_id: str) -> bool:
        """System admins and configured admin ids may run commands.

        Raises ``ResolutionError`` when the user cannot be looked up.
        """

        if self.users is not None:
            user = self.users.get_user(user_id)
            if user.is_system_admin:
                LOGGER.info("UserId %s is authorized basing on the sysadmin role membership", user_id)
                return True
        if user_id in self.registry.snapshot().config.admin_user_ids:
            LOGGER.info("UserId %s is authorized basing on the list of plugin admins", user_id)
            return True
        return False

    def execute(self, text: str, user_id: str) -> str:
        """Run one command line and return the reply text."""

        try:
            authorized = self.is_authorized(user_id)
        except ResolutionError as exc:
            return f"error occurred while authorizing the command: {exc}"
        if not authorized:
            return NOT_AUTHORIZED_TEXT

        args = text.split()
        if not args or args[0] != COMMAND:
            return HELP_TEXT

        handler = self._handlers.get(args[1]) if len(args) > 1 else None
        if handler is None:
            return HELP_TEXT
        try:
            return handler(text, args[2:])
        except CommandError as exc:
            return str(exc)
        except (OSError, ValueError, AutolinkError) as exc:
            LOGGER.exception("Autolink command failed: %s", text)
            return f"failed to save links: {exc}"

    # Link refs ---------------------------------------------------------

    def _sorted_links(self) -> List[Rule]:
        return sorted_by_display_name(self.registry.snapshot().config.rules)

    def _resolve_refs(self, ref: Optional[str], require_unique: bool) -> Tuple[List[Rule], List[int]]:
        links = self._sorted_links()
        if ref is None:
            return links, []

        if ref.isdigit():
            number = int(ref)
            if number < 1 or number > len(links):
                raise CommandError(f"{number} is not a valid link number.")
            return links, [number - 1]

        found = [index for index, link in enumerate(links) if ref in link.name]
        if not found:
            raise CommandError(f"{ref!r} not found.")
        if require_unique and len(found) > 1:
            names = [links[index].name for index in found]
            raise CommandError(f"{ref!r} matched more than one link: {names!r}")
        return links, found

    def _save(self, rules: Sequence[Rule]) -> None:
        self.store.save_rules(list(rules))
        self.registry.update_rules(rules)

    def _replace_rule(self, old: Rule, new: Rule) -> None:
        # Listing order is sorted; application order is the configured order.
        rules = list(self.registry.snapshot().config.rules)
        rules[rules.index(old)] = new
        self._save(rules)

    # Handlers ----------------------------------------------------------

    def _help(self, text: str, args: List[str]) -> str:
        return HELP_TEXT

    def _list(self, text: str, args: List[str]) -> str:
        links, refs = self._resolve_refs(args[0] if args else None, require_unique=False)
        if not refs:
            refs = list(range(len(links)))
        if not refs:
            return "No links configured.\n"
        return "".join(links[index].to_markdown(index + 1) for index in refs)

    def _delete(self, text: str, args: List[str]) -> str:
        if len(args) != 1:
            return HELP_TEXT
        links, refs = self._resolve_refs(args[0], require_unique=True)
        removed = links[refs[0]]
        rules = list(self.registry.snapshot().config.rules)
        rules.remove(removed)
        self._save(rules)
        return "removed: \n" + removed.to_markdown()

    def _enable(self, text: str, args: List[str]) -> str:
        return self._toggle(args, enabled=True)

    def _disable(self, text: str, args: List[str]) -> str:
        return self._toggle(args, enabled=False)

    def _toggle(self, args: List[str], enabled: bool) -> str:
        if len(args) != 1:
            return HELP_TEXT
        links, refs = self._resolve_refs(args[0], require_unique=True)
        old = links[refs[0]]
        new = replace(old, disabled=not enabled)
        self._replace_rule(old, new)
        return self._list("", [new.name or args[0]])

    def _add(self, text: str, args: List[str]) -> str:
        if len(args) > 1:
            return HELP_TEXT
        name = args[0] if args else ""
        self._save([*self.registry.snapshot().config.rules, Rule(name=name)])
        return self._list("", [name] if name else [])

    def _set(self, text: str, args: List[str]) -> str:
        if len(args) < 3:
            return HELP_TEXT
        links, refs = self._resolve_refs(args[0], require_unique=True)
        old = links[refs[0]]
        field_name = args[1]
        value = rest_after(text, 4)

        if field_name in TEXT_FIELDS:
            new = replace(old, **{TEXT_FIELDS[field_name]: value})
        elif field_name in BOOL_FIELDS:
            new = replace(old, **{BOOL_FIELDS[field_name]: parse_bool_arg(value)})
        elif field_name == "Scope":
            scope = tuple(args[2:])
            for entry in scope:
                error = scope_entry_error(entry)
                if error:
                    raise CommandError(error)
            new = replace(old, scope=scope)
        else:
            return f"{field_name!r} is not a supported field, must be one of {SETTABLE_FIELDS!r}"

        self._replace_rule(old, new)
        return self._list("", [new.name or args[0]])

    def _test(self, text: str, args: List[str]) -> str:
        if len(args) < 2:
            return HELP_TEXT
        links, refs = self._resolve_refs(args[0], require_unique=False)
        suffix_chars = self.registry.snapshot().config.non_word_suffix_chars
        return describe_rule_test([links[index] for index in refs], rest_after(text, 3), suffix_chars)


def describe_rule_test(rules: Sequence[Rule], sample: str, suffix_chars: str = DEFAULT_SUFFIX_CHARS) -> str:
    """Apply ``rules`` in order to ``sample`` and report each step as markdown.

    Rules are compiled in validation mode, so disabled rules take part and an
    incomplete or invalid rule stops the run with an error line.
    """

    out = f"- Original: `{sample}`\n"
    for rule in rules:
        try:
            compiled = compile_rule(rule, validate=True, suffix_chars=suffix_chars)
        except CompileError as exc:
            return f"failed to compile link {rule.display_name}: {exc.message}"
        replaced = apply_rule(compiled, sample)
        if replaced == sample:
            out += f"- Link {rule.display_name}: _no change_\n"
        else:
            out += f"- Link {rule.display_name}: changed to `{replaced}`\n"
            sample = replaced
    return out


def execute_command(
    text: str,
    user_id: str,
    registry: RuleRegistry,
    store: RuleStore,
    users: Optional[UserResolver] = None,
) -> str:
    """Convenience wrapper around ``AutolinkCommands.execute``."""

    return AutolinkCommands(registry, store, users).execute(text, user_id)
