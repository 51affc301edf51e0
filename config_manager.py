#!/usr/bin/env python3
"""
Configuration system for Drunk DM
Supports YAML files, CLI overrides, and programmatic access for the web interface
"""

import yaml
import argparse
import sys
from pathlib import Path
from typing import Dict, Any, Optional
from dataclasses import dataclass, field
from copy import deepcopy
import logging

from drunkdm_commands.dice import DiceLimits, MAX_DICE, MAX_SIDES, MAX_MODIFIER, MIN_SIDES


DEFAULT_CURRENT_FILE = "session"


@dataclass
class NoteSettings:
	"""Plugin settings - the note rolls get appended to"""
	current_file: str = DEFAULT_CURRENT_FILE

	def to_dict(self) -> Dict[str, Any]:
		return {
			'current_file': self.current_file,
		}

	@classmethod
	def from_dict(cls, data: Dict[str, Any]) -> 'NoteSettings':
		return cls(
			current_file=data.get('current_file', DEFAULT_CURRENT_FILE),
		)


@dataclass
class VaultConfig:
	"""Where the notes live"""
	path: str = "."
	extension: str = ".md"

	def to_dict(self) -> Dict[str, Any]:
		return {
			'path': self.path,
			'extension': self.extension,
		}

	@classmethod
	def from_dict(cls, data: Dict[str, Any]) -> 'VaultConfig':
		return cls(
			path=str(data.get('path', '.')),
			extension=data.get('extension', '.md'),
		)


@dataclass
class DiceConfig:
	"""Dice parser guardrails"""
	max_dice: int = MAX_DICE
	max_sides: int = MAX_SIDES
	max_modifier: int = MAX_MODIFIER

	def to_dict(self) -> Dict[str, Any]:
		return {
			'max_dice': self.max_dice,
			'max_sides': self.max_sides,
			'max_modifier': self.max_modifier,
		}

	@classmethod
	def from_dict(cls, data: Dict[str, Any]) -> 'DiceConfig':
		return cls(
			max_dice=data.get('max_dice', MAX_DICE),
			max_sides=data.get('max_sides', MAX_SIDES),
			max_modifier=data.get('max_modifier', MAX_MODIFIER),
		)

	def to_limits(self) -> DiceLimits:
		return DiceLimits(
			max_dice=self.max_dice,
			max_sides=self.max_sides,
			max_modifier=self.max_modifier,
		)


@dataclass
class ConsoleConfig:
	"""Console messages logging level configuration"""
	verbose: bool = False
	quiet: bool = False


@dataclass
class WebConfig:
	"""Web interface settings"""
	enabled: bool = False
	host: str = "127.0.0.1"
	port: int = 8000


@dataclass
class DrunkDMConfig:
	"""Complete configuration for Drunk DM"""
	settings: NoteSettings = field(default_factory=NoteSettings)
	vault: VaultConfig = field(default_factory=VaultConfig)
	dice: DiceConfig = field(default_factory=DiceConfig)
	console: ConsoleConfig = field(default_factory=ConsoleConfig)
	web: WebConfig = field(default_factory=WebConfig)

	# Not persisted; only meaningful for one run
	seed: Optional[int] = None

	config_version: str = "1.0"
	description: str = "Drunk DM Configuration"

	def to_dict(self) -> Dict[str, Any]:
		"""Convert to dictionary for YAML serialization"""
		return {
			'config_version': self.config_version,
			'description': self.description,
			'settings': self.settings.to_dict(),
			'vault': self.vault.to_dict(),
			'dice': self.dice.to_dict(),
			'console': {
				'verbose': self.console.verbose,
				'quiet': self.console.quiet,
			},
			'web': {
				'enabled': self.web.enabled,
				'host': self.web.host,
				'port': self.web.port,
			},
		}

	@classmethod
	def from_dict(cls, data: Dict[str, Any]) -> 'DrunkDMConfig':
		"""Create from dictionary (YAML loading)"""
		config = cls()

		if 'config_version' in data:
			config.config_version = str(data['config_version'])
		if 'description' in data:
			config.description = data['description']

		if isinstance(data.get('settings'), dict):
			config.settings = NoteSettings.from_dict(data['settings'])
		# Flat form: current_file at top level
		elif 'current_file' in data:
			config.settings.current_file = data['current_file']

		if isinstance(data.get('vault'), dict):
			config.vault = VaultConfig.from_dict(data['vault'])

		if isinstance(data.get('dice'), dict):
			config.dice = DiceConfig.from_dict(data['dice'])

		if isinstance(data.get('console'), dict):
			console_data = data['console']
			config.console.verbose = console_data.get('verbose', False)
			config.console.quiet = console_data.get('quiet', False)

		if isinstance(data.get('web'), dict):
			web_data = data['web']
			config.web.enabled = web_data.get('enabled', config.web.enabled)
			config.web.host = web_data.get('host', config.web.host)
			config.web.port = web_data.get('port', config.web.port)

		return config


class ConfigurationManager:
	"""
	Manages configuration loading, merging, validation and saving
	"""

	def __init__(self, config_file: str = "drunkdm.yaml"):
		self.config_file = config_file
		self.config = DrunkDMConfig()
		self.config_file_path: Optional[Path] = None

		self.logger = logging.getLogger(__name__)

		# Standard config file locations (in order of preference)
		self.config_search_paths = [
			Path.cwd() / "drunkdm.yaml",
			Path.cwd() / "config" / "drunkdm.yaml",
			Path.home() / ".config" / "drunkdm" / "config.yaml",
		]

	def load_config(self, config_file: Optional[str] = None) -> DrunkDMConfig:
		"""
		Load configuration from file with fallback chain

		Args:
			config_file: Specific config file path, or None for auto-discovery

		Returns:
			Loaded configuration object (defaults if nothing usable was found)
		"""
		if config_file:
			config_path = Path(config_file)
			# Remember the path even if missing so save_config writes there
			self.config_file_path = config_path
			if config_path.exists():
				self.config = self._load_yaml_file(config_path)
				self.logger.info(f"Loaded config from: {config_path}")
			else:
				self.logger.warning(f"Config file not found: {config_path}")
				self.logger.info("Using default configuration")
				self.config = DrunkDMConfig()
		else:
			for path in self.config_search_paths:
				if path.exists():
					self.config = self._load_yaml_file(path)
					self.config_file_path = path
					self.logger.info(f"Auto-discovered config: {path}")
					break
			else:
				self.logger.info("No config file found, using defaults")
				self.config = DrunkDMConfig()

		return self.config

	def _load_yaml_file(self, file_path: Path) -> DrunkDMConfig:
		"""Load configuration from YAML file"""
		try:
			with open(file_path, 'r', encoding='utf-8') as f:
				yaml_data = yaml.safe_load(f) or {}

			if not isinstance(yaml_data, dict):
				self.logger.error(f"Config file {file_path} does not contain a mapping, using defaults")
				return DrunkDMConfig()

			config = DrunkDMConfig.from_dict(yaml_data)
			self.logger.debug(f"Current file from config: {config.settings.current_file}")
			return config

		except (OSError, yaml.YAMLError) as e:
			self.logger.error(f"Error loading config file {file_path}: {e}")
			return DrunkDMConfig()

	def merge_cli_args(self, args: argparse.Namespace) -> DrunkDMConfig:
		"""
		Merge CLI arguments into configuration (CLI takes precedence)

		Args:
			args: Parsed command line arguments

		Returns:
			Updated configuration
		"""
		if getattr(args, 'file', None):
			self.config.settings.current_file = args.file
		if getattr(args, 'vault', None):
			self.config.vault.path = args.vault
		if getattr(args, 'seed', None) is not None:
			self.config.seed = args.seed

		if getattr(args, 'verbose', False):
			self.config.console.verbose = True
		if getattr(args, 'quiet', False):
			self.config.console.quiet = True

		if getattr(args, 'web_interface', False):
			self.config.web.enabled = True
		if getattr(args, 'web_host', None):
			self.config.web.host = args.web_host
		if getattr(args, 'web_port', None):
			self.config.web.port = args.web_port

		return self.config

	def save_config(self, file_path: Optional[str] = None) -> bool:
		"""
		Save current configuration to YAML file

		Args:
			file_path: Target file path, or None to use loaded file path

		Returns:
			True if saved successfully
		"""
		if file_path:
			target_path = Path(file_path)
		elif self.config_file_path:
			target_path = self.config_file_path
		else:
			target_path = Path(self.config_file)

		try:
			target_path.parent.mkdir(parents=True, exist_ok=True)

			with open(target_path, 'w', encoding='utf-8') as f:
				f.write("# Drunk DM Configuration\n")
				f.write("# Generated configuration file\n")
				f.write(f"# Version: {self.config.config_version}\n\n")

				yaml.dump(self.config.to_dict(), f,
						 default_flow_style=False,
						 sort_keys=False,
						 allow_unicode=True,
						 indent=2)

			self.config_file_path = target_path
			self.logger.info(f"Settings saved to: {target_path}")
			return True

		except (OSError, yaml.YAMLError) as e:
			self.logger.error(f"Error saving config to {target_path}: {e}")
			return False

	def create_sample_config(self, file_path: str = "drunkdm_sample.yaml") -> bool:
		"""Create a sample configuration file with comments"""
		try:
			with open(file_path, 'w', encoding='utf-8') as f:
				f.write(self._generate_sample_yaml())
			self.logger.info(f"Sample configuration created: {file_path}")
			return True

		except OSError as e:
			self.logger.error(f"Error creating sample config: {e}")
			return False

	def _generate_sample_yaml(self) -> str:
		"""Generate sample YAML with comments"""
		return f"""# Drunk DM Configuration File

# =============================================================================
# SETTINGS
# =============================================================================
settings:
  current_file: "{DEFAULT_CURRENT_FILE}"        # Note to append rolls to (without extension)

# =============================================================================
# VAULT
# =============================================================================
vault:
  path: "."                       # Folder holding your notes
  extension: ".md"                # Note file extension

# =============================================================================
# DICE GUARDRAILS
# =============================================================================
dice:
  max_dice: {MAX_DICE}                   # Most dice in one term
  max_sides: {MAX_SIDES}                 # Largest die
  max_modifier: {MAX_MODIFIER}             # Largest flat modifier

# =============================================================================
# CONSOLE MESSAGES LOGGING LEVEL
# =============================================================================
console:
  verbose: false                  # Verbose output (debug logging)
  quiet: false                    # Quiet mode (errors only)

# =============================================================================
# WEB INTERFACE
# =============================================================================
web:
  enabled: false                  # Serve the HTTP roller instead of the terminal loop
  host: "127.0.0.1"
  port: 8000

config_version: "1.0"
description: "Drunk DM Configuration"
"""

	def validate_config(self) -> tuple[bool, list[str]]:
		"""
		Validate configuration for common issues

		Returns:
			(is_valid, list_of_errors)
		"""
		errors = []

		current_file = self.config.settings.current_file
		if not isinstance(current_file, str) or not current_file.strip():
			errors.append("Current file must be set")

		if not self.config.vault.extension.startswith('.'):
			errors.append(f"Invalid vault extension: {self.config.vault.extension!r}. Must start with '.'")

		if not Path(self.config.vault.path).expanduser().is_dir():
			errors.append(f"Vault folder not found: {self.config.vault.path}")

		dice = self.config.dice
		if not isinstance(dice.max_dice, int) or dice.max_dice < 1:
			errors.append(f"Invalid dice max_dice: {dice.max_dice}")
		if not isinstance(dice.max_sides, int) or dice.max_sides < MIN_SIDES:
			errors.append(f"Invalid dice max_sides: {dice.max_sides}")
		if not isinstance(dice.max_modifier, int) or dice.max_modifier < 0:
			errors.append(f"Invalid dice max_modifier: {dice.max_modifier}")

		if not isinstance(self.config.web.port, int) or not (1 <= self.config.web.port <= 65535):
			errors.append(f"Invalid web port: {self.config.web.port}")

		if self.config.console.verbose and self.config.console.quiet:
			errors.append("Console cannot be both verbose and quiet")

		return len(errors) == 0, errors

	def get_config(self) -> DrunkDMConfig:
		"""Get a copy of the current configuration"""
		return deepcopy(self.config)

	def update_config(self, updates: Dict[str, Any]) -> bool:
		"""
		Update configuration programmatically (for the web interface)

		Args:
			updates: Dictionary of configuration updates in dot notation
					e.g., {"settings.current_file": "session-12"}

		Returns:
			True if all updates applied successfully
		"""
		try:
			for key, value in updates.items():
				self._set_nested_attr(self.config, key, value)
			return True
		except AttributeError as e:
			self.logger.error(f"Error updating config: {e}")
			return False

	def _set_nested_attr(self, obj, attr_path: str, value):
		"""Set nested attribute using dot notation"""
		parts = attr_path.split('.')
		for part in parts[:-1]:
			obj = getattr(obj, part)
		if not hasattr(obj, parts[-1]):
			raise AttributeError(f"Unknown config key: {attr_path}")
		setattr(obj, parts[-1], value)


def create_argument_parser():
	"""Argument parser for the drunkdm command"""
	parser = argparse.ArgumentParser(
		prog='drunkdm',
		description='Drunk DM - roll dice and append the result to your session notes',
		formatter_class=argparse.RawDescriptionHelpFormatter,
		epilog="""
Examples:
  %(prog)s                                 # Interactive roller
  %(prog)s 2d6+1                           # Roll once, append, exit
  %(prog)s 4d6kh3 --file characters        # Append to characters.md
  %(prog)s --vault ~/notes/campaign        # Use a different vault folder
  %(prog)s --web-interface                 # Serve the HTTP roller
  %(prog)s --create-config drunkdm.yaml    # Create sample config file

Configuration:
  Configuration is loaded in this order (later overrides earlier):
  1. Built-in defaults
  2. Configuration file (YAML)
  3. Command line arguments

  Config file search order:
  - drunkdm.yaml (current directory)
  - config/drunkdm.yaml
  - ~/.config/drunkdm/config.yaml
		"""
	)

	parser.add_argument(
		'expression',
		nargs='*',
		help='Dice expression to roll once (e.g. 2d6+1); omit for interactive mode'
	)

	config_group = parser.add_argument_group('Configuration')
	config_group.add_argument(
		'-c', '--config',
		type=str,
		help='Configuration file path (YAML format)'
	)
	config_group.add_argument(
		'--create-config',
		type=str,
		metavar='FILE',
		help='Create sample configuration file and exit'
	)
	config_group.add_argument(
		'--save-config',
		type=str,
		metavar='FILE',
		help='Save current configuration to file'
	)

	notes_group = parser.add_argument_group('Notes')
	notes_group.add_argument(
		'--vault',
		type=str,
		help='Folder holding the notes'
	)
	notes_group.add_argument(
		'-f', '--file',
		type=str,
		help='Note to append rolls to (without extension)'
	)

	dice_group = parser.add_argument_group('Dice')
	dice_group.add_argument(
		'--seed',
		type=int,
		help='Seed the random source for a reproducible session'
	)

	debug_group = parser.add_argument_group('Debug Options')
	debug_group.add_argument(
		'-v', '--verbose',
		action='store_true',
		help='Enable verbose debug output'
	)
	debug_group.add_argument(
		'-q', '--quiet',
		action='store_true',
		help='Quiet mode (minimal output)'
	)
	debug_group.add_argument(
		'--log-file',
		type=str,
		help='Log file path'
	)

	web_group = parser.add_argument_group('Web Interface')
	web_group.add_argument(
		'--web-interface',
		action='store_true',
		help='Serve the HTTP roller instead of the terminal loop'
	)
	web_group.add_argument(
		'--web-host',
		type=str,
		help='Host for web interface (default: 127.0.0.1)'
	)
	web_group.add_argument(
		'--web-port',
		type=int,
		help='Port for web interface (default: 8000)'
	)

	return parser


def setup_configuration(argv=None) -> tuple[Optional[DrunkDMConfig], bool, Optional[ConfigurationManager], argparse.Namespace]:
	"""
	Setup configuration system with CLI integration

	Args:
		argv: Command line arguments (None for sys.argv)

	Returns:
		(config_object, should_exit, config_manager, args)
	"""
	parser = create_argument_parser()
	args = parser.parse_args(argv)

	if args.create_config:
		manager = ConfigurationManager()
		if manager.create_sample_config(args.create_config):
			print(f"Sample configuration created: {args.create_config}")
			print(f"Edit the file and run again with: -c {args.create_config}")
		return None, True, None, args

	manager = ConfigurationManager()
	manager.load_config(args.config)
	config = manager.merge_cli_args(args)

	is_valid, errors = manager.validate_config()
	if not is_valid:
		print("Configuration errors:")
		for error in errors:
			print(f"  ✗ {error}")
		return config, True, None, args

	if args.save_config:
		if manager.save_config(args.save_config):
			print(f"Configuration saved to: {args.save_config}")

	return config, False, manager, args


if __name__ == "__main__":
	config, should_exit, _, _ = setup_configuration()

	if should_exit:
		sys.exit(0 if config is None else 1)

	print("Configuration loaded successfully!")
	print(f"Vault: {config.vault.path}")
	print(f"Current file: {config.settings.current_file}{config.vault.extension}")
	print(f"Dice limits: {config.dice.max_dice} dice, d{config.dice.max_sides}, ±{config.dice.max_modifier}")
