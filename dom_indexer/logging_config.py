import logging
import sys

from dotenv import load_dotenv

load_dotenv()

from dom_indexer.config import CONFIG


def addLoggingLevel(levelName, levelNum, methodName=None):
	"""
	Comprehensively adds a new logging level to the `logging` module and the
	currently configured logging class.

	`levelName` becomes an attribute of the `logging` module with the value
	`levelNum`. `methodName` becomes a convenience method for both `logging`
	itself and the class returned by `logging.getLoggerClass()` (usually just
	`logging.Logger`). If `methodName` is not specified, `levelName.lower()` is
	used.

	Raises `AttributeError` if the level name or method name is already taken.

	Example
	-------
	>>> addLoggingLevel('TRACE', logging.DEBUG - 5)
	>>> logging.getLogger(__name__).setLevel('TRACE')
	>>> logging.getLogger(__name__).trace('that worked')
	"""
	if not methodName:
		methodName = levelName.lower()

	if hasattr(logging, levelName):
		raise AttributeError(f'{levelName} already defined in logging module')
	if hasattr(logging, methodName):
		raise AttributeError(f'{methodName} already defined in logging module')
	if hasattr(logging.getLoggerClass(), methodName):
		raise AttributeError(f'{methodName} already defined in logger class')

	def logForLevel(self, message, *args, **kwargs):
		if self.isEnabledFor(levelNum):
			self._log(levelNum, message, args, **kwargs)

	def logToRoot(message, *args, **kwargs):
		logging.log(levelNum, message, *args, **kwargs)

	logging.addLevelName(levelNum, levelName)
	setattr(logging, levelName, levelNum)
	setattr(logging.getLoggerClass(), methodName, logForLevel)
	setattr(logging, methodName, logToRoot)


def setup_logging(stream=None, log_level=None, force_setup=False):
	"""Setup logging configuration for dom-indexer.

	Args:
		stream: Output stream for logs (default: sys.stdout).
		log_level: Override log level (default: uses CONFIG.DOM_INDEXER_LOGGING_LEVEL)
		force_setup: Force reconfiguration even if handlers already exist
	"""
	try:
		addLoggingLevel('RESULT', 35)
	except AttributeError:
		pass  # Level already exists, which is fine

	log_type = (log_level or CONFIG.DOM_INDEXER_LOGGING_LEVEL).lower()

	if logging.getLogger().hasHandlers() and not force_setup:
		return logging.getLogger('dom_indexer')

	root = logging.getLogger()
	root.handlers = []

	console = logging.StreamHandler(stream or sys.stdout)
	if log_type == 'result':
		console.setLevel('RESULT')
		console.setFormatter(logging.Formatter('%(message)s'))
	else:
		console.setFormatter(logging.Formatter('%(levelname)-8s [%(name)s] %(message)s'))

	root.addHandler(console)

	if log_type == 'result':
		root.setLevel('RESULT')
	elif log_type == 'debug':
		root.setLevel(logging.DEBUG)
	else:
		root.setLevel(logging.INFO)

	dom_indexer_logger = logging.getLogger('dom_indexer')
	dom_indexer_logger.propagate = False
	dom_indexer_logger.handlers = [console]
	dom_indexer_logger.setLevel(root.level)

	# Silence or adjust third-party loggers
	third_party_loggers = [
		'cdp_use',
		'cdp_use.client',
		'websockets',
		'httpx',
		'httpcore',
		'asyncio',
	]
	for logger_name in third_party_loggers:
		third_party = logging.getLogger(logger_name)
		third_party.setLevel(logging.ERROR)
		third_party.propagate = False

	return dom_indexer_logger
