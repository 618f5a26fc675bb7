import os
import json
import threading
import logging

from constants import (
	DEFAULT_HOST,
	DEFAULT_PORT,
	POLL_INTERVAL,
	MAX_FILES,
	MAX_FILE_SIZE,
	SAVE_DELAY,
)

logger = logging.getLogger(__name__)

APP_HOME_ENV = 'VIDEO_SORTER_HOME'
CONFIG_FILENAME = 'config.json'

DEFAULT_SETTINGS = {
	'host': DEFAULT_HOST,
	'port': DEFAULT_PORT,
	'poll_interval': POLL_INTERVAL,
	'max_files': MAX_FILES,
	'max_file_size': MAX_FILE_SIZE,
	'save_delay': SAVE_DELAY,
	'log_level': 'INFO',
}

# Config file lock for thread-safe access
config_lock = threading.Lock()

def get_app_home():
	"""
	Directory holding uploads, metadata, logs and config.json.
	"""
	home = os.environ.get(APP_HOME_ENV)
	if not home:
		home = os.path.join(os.path.expanduser('~'), '.video-sorter')
	return home

def get_config_path(home=None):
	return os.path.join(home or get_app_home(), CONFIG_FILENAME)

def load_config(home=None):
	"""
	Load configuration from config.json.
	Returns a dictionary with configuration values, empty if missing or unreadable.
	"""
	config_path = get_config_path(home)
	if os.path.exists(config_path):
		try:
			with open(config_path, 'r', encoding='utf-8') as f:
				config = json.load(f)
			if isinstance(config, dict):
				return config
			logger.warning(f"Ignoring config file {config_path}: expected a JSON object")
		except Exception as e:
			logger.warning(f"Could not load config file: {e}")
	return {}

def save_config(config, home=None):
	"""
	Save configuration to config.json.
	"""
	config_path = get_config_path(home)
	try:
		with config_lock:
			os.makedirs(os.path.dirname(config_path), exist_ok=True)
			# Use atomic write: write to temp file then rename
			temp_path = config_path + '.tmp'
			with open(temp_path, 'w', encoding='utf-8') as f:
				json.dump(config, f, indent=2)
			os.replace(temp_path, config_path)
		return True
	except Exception as e:
		logger.error(f"Could not save config file: {e}")
		return False

def get_settings(home=None):
	"""
	Defaults overlaid with whatever config.json provides.
	"""
	settings = dict(DEFAULT_SETTINGS)
	for key, value in load_config(home).items():
		if key in settings:
			settings[key] = value
		else:
			logger.warning(f"Unknown config key ignored: {key}")
	return settings

def set_port(port, home=None):
	"""
	Persist a new listening port.
	"""
	try:
		port = int(port)
	except (TypeError, ValueError):
		raise ValueError(f"Port must be a number: {port!r}")
	if not 1 <= port <= 65535:
		raise ValueError(f"Port out of range: {port}")

	config = load_config(home)
	config['port'] = port
	if save_config(config, home):
		return port
	raise RuntimeError("Failed to save configuration")
