#!/usr/bin/env python3
"""
Drunk DM - dice roller for session notes

Roll a dice expression and append "Rolled <expression>: <total>" to the
current note in the vault.

Input → CommandDispatcher → DiceCommand (parse + roll) → DrunkDM.add_to_current_file() → append_line()
Empty input → DicePrompt → same path

Class Organization

UserPrompt (drunkdm_commands.prompt) - asks for a dice expression
DocumentStore (note_store) - reads and writes notes
DrunkDM - the application: settings, rolling, appending, terminal loop

The dice engine never logs; this module logs what the user asked for,
what came out and where it was written.
"""

import sys
import threading
import logging
from typing import Callable, Optional

from config_manager import (
	ConfigurationManager,
	DrunkDMConfig,
	NoteSettings,
	setup_configuration,
)
from note_store import (
	DocumentNotFoundError,
	DocumentStore,
	VaultDocumentStore,
	append_line,
)
from drunkdm_commands import (
	PROMPT_LABEL,
	CommandResult,
	ParseError,
	RandomSource,
	RollResult,
	TerminalPrompt,
	UserPrompt,
	build_dispatcher,
	parse_dice,
	roll_dice,
	seeded_factory,
)


ROLL_LINE_FORMAT = "Rolled {expression}: {total}"
LOG_FORMAT = "[%(asctime)s] [%(levelname)s] [%(name)s] - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(verbose: bool = False, quiet: bool = False, log_file: Optional[str] = None):
	"""
	Console shows warnings by default, debug when verbose, errors only when quiet
	The log file, if any, always gets INFO and up (DEBUG when verbose)
	"""
	root_level = logging.DEBUG if verbose else logging.INFO
	if verbose:
		console_level = logging.DEBUG
	elif quiet:
		console_level = logging.ERROR
	else:
		console_level = logging.WARNING

	formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

	console_handler = logging.StreamHandler(sys.stderr)
	console_handler.setLevel(console_level)
	console_handler.setFormatter(formatter)
	handlers = [console_handler]

	if log_file:
		file_handler = logging.FileHandler(log_file, encoding="utf-8")
		file_handler.setLevel(root_level)
		file_handler.setFormatter(formatter)
		handlers.append(file_handler)

	logging.basicConfig(level=root_level, handlers=handlers, force=True)


def format_roll_line(expression: str, total: int) -> str:
	return ROLL_LINE_FORMAT.format(expression=expression, total=total)


class DrunkDM:
	"""
	The dice-to-notes application

	Settings live in an explicit DrunkDMConfig; load_settings/save_settings
	go through the ConfigurationManager when one is given.
	"""

	def __init__(
		self,
		config: DrunkDMConfig,
		store: DocumentStore,
		prompt: Optional[UserPrompt] = None,
		config_manager: Optional[ConfigurationManager] = None,
		random_factory: Optional[Callable[[], RandomSource]] = None,
		notify: Callable[[str], None] = print,
	):
		self.config = config
		self.store = store
		self.prompt = prompt or TerminalPrompt()
		self.config_manager = config_manager
		self.random_factory = random_factory or seeded_factory(config.seed)
		self.limits = config.dice.to_limits()
		self.notify = notify
		self.running = False

		# Serializes the read-modify-write append; the web server calls in from worker threads
		self.append_lock = threading.Lock()

		self.logger = logging.getLogger(__name__)

		self.dispatcher = build_dispatcher(
			host=self,
			random_factory=self.random_factory,
			limits=self.limits,
			prompt=self.prompt,
		)
		self.logger.debug(f"Drunk DM ready, current file: {self.current_file_name}")

	@property
	def settings(self) -> NoteSettings:
		return self.config.settings

	@property
	def current_file_name(self) -> str:
		return self.store.display_name(self.settings.current_file)

	# Rolling

	def roll(self, text: str) -> RollResult:
		"""
		Parse and roll an expression with a fresh random source

		Raises:
			ParseError: if the expression is invalid
		"""
		self.logger.info(f"Rolling dice: {text}")
		expression = parse_dice(text, self.limits)
		result = roll_dice(expression, self.random_factory())
		self.logger.info(f"Roll result: {result.total} ({result.breakdown()})")
		return result

	def roll_from_prompt(self) -> Optional[RollResult]:
		"""Ask for an expression, roll it, append it, and notify"""
		text = self.prompt.ask(PROMPT_LABEL)
		if not text:
			self.logger.debug("Dice prompt cancelled")
			return None

		try:
			result = self.roll(text)
		except ParseError as e:
			self.logger.warning(f"Invalid dice expression {text!r}: {e}")
			self.notify(f"Could not roll {text!r}: {e}")
			return None

		line = format_roll_line(result.expression_text, result.total)
		self.add_to_current_file(line)
		self.notify(line)
		return result

	def roll_once(self, text: str) -> int:
		"""One-shot CLI roll. Returns a process exit code"""
		try:
			result = self.roll(text)
		except ParseError as e:
			print(f"Error: {e}", file=sys.stderr)
			return 2

		appended = self.add_to_current_file(format_roll_line(result.expression_text, result.total))
		print(result.format_summary())
		return 0 if appended else 1

	# Notes

	def add_to_current_file(self, content: str) -> bool:
		"""Append one line to the current note. False if the note is missing"""
		doc_id = self.settings.current_file
		try:
			with self.append_lock:
				append_line(self.store, doc_id, content)
		except DocumentNotFoundError:
			self.notify(f"File {self.current_file_name} not found")
			self.logger.error(f"File not found: {self.current_file_name}")
			return False
		except ValueError as e:
			self.notify(str(e))
			self.logger.error(f"Cannot write to {doc_id!r}: {e}")
			return False
		except OSError as e:
			self.notify(f"Could not write to {self.current_file_name}: {e}")
			self.logger.error(f"Error writing to {self.current_file_name}: {e}")
			return False
		return True

	# Settings

	def load_settings(self) -> NoteSettings:
		"""Reload settings from the configuration file, defaults for anything missing"""
		if self.config_manager is not None:
			path = self.config_manager.config_file_path
			loaded = self.config_manager.load_config(str(path) if path else None)
			self.config.settings = loaded.settings
			self.config_manager.config = self.config
		self.logger.info(f"Settings loaded: {self.settings}")
		return self.settings

	def save_settings(self) -> bool:
		if self.config_manager is None:
			self.logger.warning("No configuration manager, settings not saved")
			return False
		self.config_manager.config = self.config
		saved = self.config_manager.save_config()
		if saved:
			self.logger.info(f"Settings saved: {self.settings}")
		return saved

	# Terminal interface

	def handle_line(self, line: str) -> Optional[CommandResult]:
		"""
		Handle one line of terminal input

		Empty line opens the dice prompt, /commands are dispatched,
		anything else is rolled as a dice expression
		"""
		stripped = line.strip()

		if not stripped:
			self.roll_from_prompt()
			return None

		if stripped.lower() in ('quit', 'exit', '/quit'):
			self.running = False
			return None

		if stripped.lower() in ('help', '/help', '/h', '/?'):
			self.show_help()
			return None

		result = self.dispatcher.dispatch(stripped, default="roll")
		if result is None:
			self.notify(f"Unknown command: {stripped.split()[0]} (type /help)")
			return None

		self._record_roll(result)
		self._display_result(result)
		return result

	def _record_roll(self, result: CommandResult):
		"""Append successful /roll results to the current note"""
		if result.command != "roll" or result.is_error or result.details.get("cancelled"):
			return
		line = format_roll_line(result.details["expression"], result.details["total"])
		result.details["appended"] = self.add_to_current_file(line)

	def _display_result(self, result: CommandResult):
		if result.is_error:
			self.notify(f"[error] {result.error}")
		else:
			self.notify(result.summary)

	def show_help(self):
		self.notify("Commands:")
		for _, help_text in self.dispatcher.list_commands():
			self.notify(f"  {help_text}")
		self.notify("  <expression> - Roll it directly (e.g. 2d6+1)")
		self.notify("  <enter> - Open the dice prompt")
		self.notify("  quit - Exit")

	def run(self, input_func: Callable[[str], str] = input):
		"""Interactive loop until quit or EOF"""
		self.running = True
		self.notify("=" * 60)
		self.notify("  Drunk DM - rolls go to " + self.current_file_name)
		self.notify("  Type a dice expression, /help for commands, quit to exit")
		self.notify("=" * 60)

		while self.running:
			try:
				line = input_func("roll> ")
			except (EOFError, KeyboardInterrupt):
				self.notify("")
				break
			self.handle_line(line)

		self.running = False
		self.logger.info("Unloading Drunk DM")


def main(argv=None) -> int:
	config, should_exit, config_manager, args = setup_configuration(argv)
	if should_exit:
		return 0 if config is None else 1

	configure_logging(config.console.verbose, config.console.quiet, args.log_file)

	store = VaultDocumentStore(config.vault.path, config.vault.extension)
	app = DrunkDM(
		config,
		store,
		prompt=TerminalPrompt(),
		config_manager=config_manager,
	)
	app.logger.info(f"Loading Drunk DM with settings: {config.settings}")

	if args.expression:
		return app.roll_once(" ".join(args.expression))

	if config.web.enabled:
		from web_interface import initialize_web_interface, run_web_server
		initialize_web_interface(app)
		run_web_server(config.web.host, config.web.port, config)
		return 0

	app.run()
	return 0


if __name__ == "__main__":
	sys.exit(main())
