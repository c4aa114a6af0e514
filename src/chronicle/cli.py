"""CLI interface for chronicle."""

import json
import os

from groq import AsyncGroq

from .archive import EventArchive
from .config import EngineConfig, config_from_env, load_config
from .engine import Engine
from .errors import ChronicleError
from .llm import EventParser, GroqLLMClient, RuleLearner
from .logging import configure_logger
from .memory import TemporalMemory
from .terms import Bindings, format_term

BANNER = """
╔══════════════════════════════════════════╗
║           chronicle v0.1.0               ║
║    Temporal facts, Event Calculus        ║
╚══════════════════════════════════════════╝

Commands:
  /assert <event> [@ <time>]   - Record an event (default: now)
  /query <pattern> [@ <time>]  - Show bindings for a fluent pattern
  /holds <fluent> [@ <time>]   - Check whether a fluent holds
  /state [<time>]              - List every fluent that holds
  /ever <fluent>               - Check whether a fluent ever held
  /timeline <fluent>           - Show holding intervals
  /events                      - List stored events
  /now [<time>]                - Show or set the current date
  /learn <verb> <json>         - Register a rule record for a verb
  /save                        - Archive events and learned rules
  /reset                       - Drop events and learned rules
  /help                        - Show this help
  /exit, /quit                 - Exit the CLI

Other text is read as a statement when GROQ_API_KEY is set.
"""


def _split_time(argument: str) -> tuple[str, str | None]:
    """Split ``<term> @ <time>`` into its parts."""
    term, sep, at = argument.rpartition("@")
    if not sep:
        return argument.strip(), None
    return term.strip(), at.strip() or None


def _format_bindings(bindings: Bindings) -> str:
    if not bindings:
        return "yes"
    return ", ".join(f"{name} = {format_term(value)}" for name, value in bindings.items())


class CLI:
    """Interactive command-line interface for chronicle."""

    def __init__(
        self,
        engine: Engine | None = None,
        config: EngineConfig | None = None,
        archive: EventArchive | None = None,
        memory: TemporalMemory | None = None,
    ) -> None:
        config = config or config_from_env(load_config())
        self.config = config

        if engine is None:
            audit = (
                configure_logger(config.log_dir, config.max_log_size_mb)
                if config.log_enabled
                else None
            )
            engine = Engine(config.current_date, max_depth=config.max_term_depth, audit=audit)
        self.engine = engine

        if archive is None:
            archive = EventArchive(config.db_path)
            archive.init_db()
        self.archive = archive

        if memory is None and os.getenv("GROQ_API_KEY"):
            llm = GroqLLMClient(AsyncGroq(api_key=os.getenv("GROQ_API_KEY")), model=config.model)
            memory = TemporalMemory(
                engine,
                EventParser(llm),
                RuleLearner(llm),
                auto_learn=config.auto_learn,
            )
        self.memory = memory

    def load(self) -> int:
        """Replay the archive into the engine."""
        return self.archive.restore(self.engine)

    async def _remember(self, text: str) -> None:
        if self.memory is None:
            print("Unknown input. Type /help for commands (free text needs GROQ_API_KEY).")
            return

        ids = await self.memory.remember(text)
        if not ids:
            print("Nothing to remember.")
            return
        for event_id in ids:
            print(f"✓ {self.engine.store.get(event_id)}")

    def _assert(self, argument: str) -> None:
        term, at = _split_time(argument)
        event_id = self.engine.assert_event(term, at or self.engine.current_date)
        print(f"✓ {self.engine.store.get(event_id)}")

    def _query(self, argument: str) -> None:
        pattern, at = _split_time(argument)
        results = self.engine.query(pattern, at)
        if not results:
            print("no")
            return
        for bindings in results:
            print(_format_bindings(bindings))

    def _holds(self, argument: str) -> None:
        fluent, at = _split_time(argument)
        print("yes" if self.engine.query(fluent, at) else "no")

    def _state(self, argument: str) -> None:
        holdings = self.engine.all_holding(argument or None)
        if not holdings:
            print("Nothing holds.")
            return
        for holding in holdings:
            print(f"{format_term(holding.fluent)}  (since {holding.since})")

    def _timeline(self, argument: str) -> None:
        intervals = self.engine.timeline(argument)
        if not intervals:
            print("Never held.")
            return
        for interval in intervals:
            end = interval.end or "now"
            print(f"{format_term(interval.fluent)}  {interval.start} → {end}")

    def _events(self) -> None:
        events = self.engine.events()
        if not events:
            print("No events.")
            return
        for event in events:
            print(f"{event.id:>4}  {event}")

    def _now(self, argument: str) -> None:
        if argument:
            self.engine.set_current_date(argument)
        print(f"Current date: {self.engine.current_date}")

    def _learn(self, argument: str) -> None:
        verb, _, payload = argument.partition(" ")
        if not verb or not payload.strip():
            print("Usage: /learn <verb> <json>")
            return
        try:
            data = json.loads(payload)
        except json.JSONDecodeError as e:
            print(f"❌ Invalid JSON: {e}")
            return
        if not isinstance(data, dict):
            print("❌ Rule record must be a JSON object")
            return
        added = self.engine.register_rule({**data, "verb": verb})
        print(f"✓ {len(added)} rule(s) registered for {verb}")

    def _save(self) -> None:
        count = self.archive.snapshot(self.engine)
        print(f"✓ Archived {count} new event(s) to {self.archive.db_path}")

    def _reset(self) -> None:
        self.engine.reset()
        if self.memory and self.memory.learner:
            self.memory.learner.clear()
        print("✓ Engine reset. Built-in rules kept.")

    async def _handle_command(self, command: str) -> bool:
        """Handle a special command. Returns True if should continue, False to exit."""
        name, _, argument = command.strip().partition(" ")
        name = name.lower()
        argument = argument.strip()

        if name in ("/exit", "/quit", "exit", "quit"):
            print("\n👋 Goodbye!")
            return False

        try:
            if name == "/assert":
                self._assert(argument)
            elif name == "/query":
                self._query(argument)
            elif name == "/holds":
                self._holds(argument)
            elif name == "/state":
                self._state(argument)
            elif name == "/ever":
                print("yes" if self.engine.ever_held(argument) else "no")
            elif name == "/timeline":
                self._timeline(argument)
            elif name == "/events":
                self._events()
            elif name == "/now":
                self._now(argument)
            elif name == "/learn":
                self._learn(argument)
            elif name == "/save":
                self._save()
            elif name == "/reset":
                self._reset()
            elif name == "/help":
                print(BANNER)
            else:
                print(f"Unknown command: {name}. Type /help for commands.")
        except ChronicleError as e:
            print(f"❌ {e}")

        return True

    async def run(self) -> None:
        """Run the interactive CLI."""
        print(BANNER)
        restored = self.load()
        if restored:
            print(f"Restored {restored} event(s) from {self.archive.db_path}")
        print(f"Current date: {self.engine.current_date}\n")

        try:
            while True:
                try:
                    user_input = input("chronicle> ").strip()

                    if not user_input:
                        continue

                    if user_input.startswith("/") or user_input.lower() in ("exit", "quit"):
                        if not await self._handle_command(user_input):
                            break
                        continue

                    try:
                        await self._remember(user_input)
                    except ChronicleError as e:
                        print(f"❌ {e}")

                except KeyboardInterrupt:
                    print("\n\n⚡ Interrupted")
                    try:
                        confirm = input("Exit? (y/n): ").strip().lower()
                        if confirm in ("y", "yes"):
                            print("👋 Goodbye!")
                            break
                    except (KeyboardInterrupt, EOFError):
                        print("\n👋 Goodbye!")
                        break

                except EOFError:
                    print("\n👋 Goodbye!")
                    break
        finally:
            self.archive.close()


async def run_cli() -> None:
    """Run the CLI with configuration from the config file and environment."""
    cli = CLI()
    await cli.run()
