import os
import logging

logger = logging.getLogger(__name__)


def format_size(num_bytes):
	"""
	Human readable size, e.g. 1536 -> '1.5 KB'.
	"""
	units = ['B', 'KB', 'MB', 'GB', 'TB']
	size = float(num_bytes or 0)
	unit_index = 0
	while size >= 1024 and unit_index < len(units) - 1:
		size /= 1024
		unit_index += 1
	return f"{size:.1f} {units[unit_index]}"


class FileManager:
	"""
	Layout of the application home directory.
	"""

	def __init__(self, root):
		self.root = root
		self.paths = {
			'root': root,
			'raw': os.path.join(root, 'imports', 'raw'),
			'logs': os.path.join(root, 'logs'),
			'metadata': os.path.join(root, 'metadata.json')
		}

	def initialize(self):
		for key in ('root', 'raw', 'logs'):
			os.makedirs(self.paths[key], exist_ok=True)
		logger.info(f"File manager initialized at: {self.root}")
		return dict(self.paths)

	def delete_video(self, file_path):
		"""
		Remove an uploaded file. Returns True if something was deleted.
		"""
		if file_path and os.path.isfile(file_path):
			os.remove(file_path)
			return True
		return False

	def get_file_stats(self, file_path):
		try:
			stats = os.stat(file_path)
		except OSError:
			return None
		return {
			'size': stats.st_size,
			'modified': stats.st_mtime
		}
