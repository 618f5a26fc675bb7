"""
JSON backed store for video and export records.

The whole document lives in memory and every mutation is applied under one lock,
so concurrent upload requests never see a half-applied write. Writing to disk is
debounced: each mutation (re)starts a short timer and only the last one in a
burst actually hits the file. Call flush() before exiting.
"""
import os
import copy
import json
import threading
import logging
from datetime import datetime, timezone

from constants import CATEGORIES, METADATA_VERSION, SAVE_DELAY
from errors import InvalidCategory

logger = logging.getLogger(__name__)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _utc_now():
	return datetime.now(timezone.utc).isoformat()

def _empty_document():
	return {
		'version': METADATA_VERSION,
		'lastUpdated': _utc_now(),
		'videos': [],
		'exports': []
	}

def _timestamp_key(value):
	"""
	Sort key for ISO timestamps; unparseable or missing values sort last.
	"""
	if not value:
		return _EPOCH
	try:
		parsed = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
	except ValueError:
		return _EPOCH
	if parsed.tzinfo is None:
		parsed = parsed.replace(tzinfo=timezone.utc)
	return parsed


class MetadataStore:

	def __init__(self, file_path, save_delay=SAVE_DELAY):
		self.file_path = file_path
		self.save_delay = save_delay
		self.data = _empty_document()
		self._lock = threading.RLock()
		self._write_lock = threading.Lock()
		self._save_timer = None

	def load(self):
		"""
		Read the document from disk. A corrupt file is discarded in memory (the file
		itself is left alone until the next save) and the store starts empty.
		"""
		data = _empty_document()
		if os.path.exists(self.file_path):
			try:
				with open(self.file_path, 'r', encoding='utf-8') as f:
					loaded = json.load(f)
				if not isinstance(loaded, dict):
					raise ValueError('metadata root is not an object')
				if not isinstance(loaded.get('videos', []), list) or not isinstance(loaded.get('exports', []), list):
					raise ValueError('videos/exports must be lists')
				data.update(loaded)
				data.setdefault('videos', [])
				data.setdefault('exports', [])
				logger.info(f"Loaded {len(data['videos'])} videos from metadata")
			except Exception as e:
				logger.error(f"Error loading metadata from {self.file_path}, starting fresh: {e}", exc_info=True)
				data = _empty_document()

		with self._lock:
			self.data = data
			return copy.deepcopy(self.data)

	def save(self):
		"""
		Write the document now, atomically (temp file then rename).
		"""
		# snapshot inside the write lock so writes land in snapshot order
		with self._write_lock:
			with self._lock:
				self.data['lastUpdated'] = _utc_now()
				payload = json.dumps(self.data, indent=2)

			try:
				directory = os.path.dirname(self.file_path)
				if directory:
					os.makedirs(directory, exist_ok=True)
				temp_path = self.file_path + '.tmp'
				with open(temp_path, 'w', encoding='utf-8') as f:
					f.write(payload)
				os.replace(temp_path, self.file_path)
			except Exception as e:
				logger.error(f"Error saving metadata: {e}", exc_info=True)
				raise

	def _save_in_background(self):
		try:
			self.save()
		except Exception:
			# already logged by save(); the next mutation reschedules
			pass
		finally:
			with self._lock:
				# Timer is a Thread; only clear it if no newer save was scheduled meanwhile
				if self._save_timer is threading.current_thread():
					self._save_timer = None

	def schedule_save(self):
		"""
		Debounced save: a new mutation cancels the pending write and starts the timer again.
		"""
		with self._lock:
			if self._save_timer is not None:
				self._save_timer.cancel()
			self._save_timer = threading.Timer(self.save_delay, self._save_in_background)
			self._save_timer.daemon = True
			self._save_timer.start()

	def flush(self):
		"""
		Cancel any pending debounced write and save immediately. Used on shutdown.
		"""
		with self._lock:
			if self._save_timer is not None:
				self._save_timer.cancel()
				self._save_timer = None
		self.save()

	@property
	def has_pending_save(self):
		with self._lock:
			return self._save_timer is not None

	def _find_index(self, video_id):
		for index, video in enumerate(self.data['videos']):
			if video.get('id') == video_id:
				return index
		return -1

	# Video operations

	def add_video(self, video):
		if video.get('category') is not None and video['category'] not in CATEGORIES:
			raise InvalidCategory(video['category'])

		with self._lock:
			index = self._find_index(video.get('id'))
			if index >= 0:
				merged = dict(self.data['videos'][index])
				merged.update(video)
				self.data['videos'][index] = merged
			else:
				merged = dict(video)
				self.data['videos'].append(merged)
			result = copy.deepcopy(merged)
		self.schedule_save()
		return result

	def update_video(self, video_id, updates):
		if 'category' in updates and updates['category'] not in CATEGORIES:
			raise InvalidCategory(updates['category'])

		with self._lock:
			index = self._find_index(video_id)
			if index < 0:
				return None
			updated = dict(self.data['videos'][index])
			updated.update(updates)
			updated['id'] = video_id
			self.data['videos'][index] = updated
			result = copy.deepcopy(updated)
		self.schedule_save()
		return result

	def delete_video(self, video_id):
		with self._lock:
			index = self._find_index(video_id)
			if index < 0:
				return None
			removed = self.data['videos'].pop(index)
		self.schedule_save()
		return removed

	def get_video(self, video_id):
		with self._lock:
			index = self._find_index(video_id)
			if index < 0:
				return None
			return copy.deepcopy(self.data['videos'][index])

	def get_videos(self, category=None, exported=None):
		"""
		Videos newest first, optionally filtered by category and by exported state.
		"""
		with self._lock:
			videos = copy.deepcopy(self.data['videos'])

		if category:
			videos = [v for v in videos if v.get('category') == category]

		if exported is True:
			videos = [v for v in videos if v.get('exportedAt')]
		elif exported is False:
			videos = [v for v in videos if not v.get('exportedAt')]

		videos.sort(key=lambda v: _timestamp_key(v.get('uploadedAt')), reverse=True)
		return videos

	# Export operations

	def add_export(self, export_record):
		with self._lock:
			record = dict(export_record)
			self.data['exports'].append(record)
			result = copy.deepcopy(record)
		self.schedule_save()
		return result

	def get_exports(self):
		with self._lock:
			exports = copy.deepcopy(self.data['exports'])
		exports.sort(key=lambda e: _timestamp_key(e.get('timestamp')), reverse=True)
		return exports

	def get_stats(self):
		with self._lock:
			videos = list(self.data['videos'])
			last_updated = self.data.get('lastUpdated')

		by_category = {}
		total_size = 0
		for video in videos:
			category = video.get('category')
			by_category[category] = by_category.get(category, 0) + 1
			total_size += video.get('size') or 0

		return {
			'totalVideos': len(videos),
			'totalSize': total_size,
			'byCategory': by_category,
			'lastUpdated': last_updated
		}
