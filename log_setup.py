import os
import sys
import logging

LOG_FILENAME = 'video-sorter.log'
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

def setup_logging(log_dir, level='INFO'):
	"""
	Configure file + console logging for the whole process.
	Successful uploads go through the 'uploads' logger, which always records at INFO
	even when the root level is raised to WARNING.
	"""
	root = logging.getLogger()
	log_file = os.path.join(log_dir, LOG_FILENAME)

	# Already configured, nothing to do
	if root.handlers:
		return log_file

	os.makedirs(log_dir, exist_ok=True)

	logging.basicConfig(
		level=getattr(logging, str(level).upper(), logging.INFO),
		format=LOG_FORMAT,
		handlers=[
			logging.FileHandler(log_file, encoding='utf-8'),
			logging.StreamHandler(sys.stdout)  # Also log to console
		]
	)

	upload_logger = logging.getLogger('uploads')
	upload_logger.setLevel(logging.INFO)
	if not upload_logger.handlers:
		upload_handler = logging.FileHandler(log_file, encoding='utf-8')
		upload_handler.setFormatter(logging.Formatter(LOG_FORMAT))
		upload_logger.addHandler(upload_handler)
		upload_logger.propagate = False

	return log_file
