import os
import shutil
import threading
import logging
from datetime import datetime, timezone

from constants import CHUNK_SIZE, DEFAULT_CATEGORY
from drive_detector import get_drive_space
from errors import ExportInProgress, DestinationNotFound, InsufficientSpace
from file_manager import format_size

logger = logging.getLogger(__name__)


class ExportState:
	IDLE = 'idle'
	EXPORTING = 'exporting'
	COMPLETED = 'completed'
	ABORTED = 'aborted'
	FAILED = 'failed'


def _utc_now():
	return datetime.now(timezone.utc).isoformat()

def _percent(completed, total):
	return round(completed / total * 100) if total else 100

def _join_inside(folder, name):
	"""
	folder/name, refusing any name that would land anywhere but directly inside folder.
	"""
	path = os.path.join(folder, name)
	if os.path.dirname(os.path.realpath(path)) != os.path.realpath(folder):
		raise ValueError(f"Unsafe path component: {name!r}")
	return path


class ExportEngine:
	"""
	Copies videos to a drive, one category folder per video category.

	One export at a time. Files are processed strictly in order; a file that
	already exists with the same name and size is skipped, a failure on one file
	is recorded and the loop moves on. abort() is checked between files.
	Updating metadata afterwards is the caller's job.
	"""

	def __init__(self, space_provider=get_drive_space):
		self.space_provider = space_provider
		self.state = ExportState.IDLE
		self.last_state = None
		self._lock = threading.Lock()
		self._abort_event = threading.Event()

	@property
	def is_exporting(self):
		return self.state == ExportState.EXPORTING

	def abort(self):
		self._abort_event.set()

	def get_status(self):
		return {
			'isExporting': self.is_exporting,
			'state': self.state,
			'lastState': self.last_state
		}

	def is_duplicate(self, video, dest_path):
		"""
		Same name and same byte size counts as already exported. No content hashing.
		"""
		try:
			if not os.path.isfile(dest_path):
				return False
			return os.path.getsize(dest_path) == (video.get('size') or 0)
		except OSError:
			return False

	def copy_file(self, source, dest_path):
		"""
		Copy without ever overwriting: the destination is created exclusively, so an
		existing file raises FileExistsError.
		"""
		with open(source, 'rb') as src:
			with open(dest_path, 'xb') as dst:
				try:
					shutil.copyfileobj(src, dst, CHUNK_SIZE)
				except BaseException:
					dst.close()
					os.remove(dest_path)
					raise
		shutil.copystat(source, dest_path)

	def _check_preconditions(self, videos, destination):
		if not destination or not os.path.isdir(destination):
			raise DestinationNotFound(destination)

		required = sum(v.get('size') or 0 for v in videos)
		available = self.space_provider(destination).get('free', 0)
		if available < required:
			raise InsufficientSpace(
				required,
				available,
				f"Insufficient space. Need {format_size(required)}, available {format_size(available)}"
			)

	def _finish(self, state):
		with self._lock:
			self.last_state = state
			self.state = ExportState.IDLE

	def export_videos(self, videos, destination, on_progress=None):
		"""
		Export videos ({id, path, filename, category, size}) to destination.

		Raises ExportInProgress, DestinationNotFound or InsufficientSpace before any
		file is touched. Otherwise returns a result dict with copied/skipped/failed lists.
		"""
		with self._lock:
			if self.state == ExportState.EXPORTING:
				raise ExportInProgress()
			self.state = ExportState.EXPORTING
			self._abort_event.clear()

		try:
			self._check_preconditions(videos, destination)
		except Exception:
			self._finish(ExportState.FAILED)
			raise

		result = {
			'success': True,
			'aborted': False,
			'copied': [],
			'skipped': [],
			'failed': [],
			'totalSize': 0,
			'destination': destination,
			'startTime': _utc_now(),
			'endTime': None
		}
		total = len(videos)
		completed = 0

		def notify(outcome, video, error=None):
			progress = {
				'type': outcome,
				'filename': video.get('filename'),
				'completed': completed,
				'total': total,
				'percent': _percent(completed, total)
			}
			if error is not None:
				progress['error'] = error
			if on_progress:
				try:
					on_progress(progress)
				except Exception as e:
					logger.error(f"Export progress callback failed: {e}", exc_info=True)

		logger.info(f"Exporting {total} video(s) to {destination}")
		try:
			for video in videos:
				if self._abort_event.is_set():
					result['aborted'] = True
					logger.warning(f"Export to {destination} aborted after {completed}/{total} file(s)")
					break

				filename = video.get('filename')
				category = video.get('category') or DEFAULT_CATEGORY
				try:
					category_folder = _join_inside(destination, category)
					dest_file = _join_inside(category_folder, filename)
					os.makedirs(category_folder, exist_ok=True)

					if self.is_duplicate(video, dest_file):
						result['skipped'].append({
							'id': video.get('id'),
							'filename': filename,
							'reason': 'Duplicate (same file exists)'
						})
						completed += 1
						notify('skipped', video)
						continue

					self.copy_file(video['path'], dest_file)
					result['copied'].append({
						'id': video.get('id'),
						'filename': filename,
						'category': category,
						'size': video.get('size')
					})
					result['totalSize'] += video.get('size') or 0
					completed += 1
					notify('copied', video)

				except Exception as e:
					logger.error(f"Failed to export {filename}: {e}", exc_info=True)
					result['failed'].append({
						'id': video.get('id'),
						'filename': filename,
						'error': str(e)
					})
					completed += 1
					notify('failed', video, error=str(e))
		finally:
			result['endTime'] = _utc_now()
			result['success'] = not result['failed'] and not result['aborted']
			if result['aborted']:
				self._finish(ExportState.ABORTED)
			elif result['success']:
				self._finish(ExportState.COMPLETED)
			else:
				self._finish(ExportState.FAILED)

		logger.info(
			f"Export to {destination} finished: {len(result['copied'])} copied, "
			f"{len(result['skipped'])} skipped, {len(result['failed'])} failed"
		)
		return result
