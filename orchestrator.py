"""
Wires the upload server, metadata store, drive detector and export engine
together and exposes the operations the desktop UI calls.

The UI subscribes to push events on the EventBus:

	video:added      a newly uploaded and classified video record
	usb:changed      the new drive list
	export:progress  one entry per exported file
	export:complete  the export result
"""
import os
import sys
import time
import uuid
import threading
import logging
from datetime import datetime, timezone
from urllib.parse import urlencode

from classifier import classify_video, manual_classify
from constants import (
	QR_API_URL,
	VIDEO_ADDED,
	USB_CHANGED,
	EXPORT_PROGRESS,
	EXPORT_COMPLETE,
)
from drive_detector import DriveDetector, get_drive_space
from errors import ExportError
from export_engine import ExportEngine
from file_manager import FileManager
from log_setup import setup_logging
from metadata_store import MetadataStore
from receiver import UploadServer
from session import SessionManager
from settings import get_app_home, get_settings

logger = logging.getLogger(__name__)


class EventBus:
	"""
	Minimal publish/subscribe channel between the core and the UI.
	"""

	def __init__(self):
		self._handlers = {}
		self._lock = threading.Lock()

	def subscribe(self, channel, handler):
		with self._lock:
			self._handlers.setdefault(channel, []).append(handler)

		def unsubscribe():
			with self._lock:
				handlers = self._handlers.get(channel, [])
				if handler in handlers:
					handlers.remove(handler)
		return unsubscribe

	def emit(self, channel, payload):
		with self._lock:
			handlers = list(self._handlers.get(channel, []))
		for handler in handlers:
			try:
				handler(payload)
			except Exception as e:
				logger.error(f"Event handler for {channel} failed: {e}", exc_info=True)


class VideoSorterApp:

	def __init__(self, settings=None, home=None, drive_lister=None, space_provider=get_drive_space):
		self.home = home or get_app_home()
		self.settings = settings or get_settings(self.home)
		self.events = EventBus()

		self.session = SessionManager()
		self.session.generate_token()

		self.file_manager = FileManager(self.home)
		self.paths = self.file_manager.initialize()

		self.metadata = MetadataStore(self.paths['metadata'], save_delay=self.settings['save_delay'])
		self.detector = DriveDetector(
			lister=drive_lister,
			poll_interval=self.settings['poll_interval'],
			on_change=self._on_drives_changed
		)
		self.exporter = ExportEngine(space_provider=space_provider)
		self.server = UploadServer(
			upload_dir=self.paths['raw'],
			session=self.session,
			on_file_uploaded=self.handle_file_uploaded,
			port=self.settings['port'],
			host=self.settings['host'],
			max_files=self.settings['max_files'],
			max_file_size=self.settings['max_file_size'],
			stats_provider=self.metadata.get_stats
		)

	def start(self):
		self.metadata.load()
		self.detector.start_polling()
		address = self.server.start()
		logger.info("Application initialized successfully")
		return address

	def shutdown(self):
		self.server.stop()
		self.detector.stop_polling()
		self.exporter.abort()
		self.metadata.flush()
		logger.info("Application shut down")

	def _on_drives_changed(self, drives):
		logger.info(f"Drive list changed: {[d.get('label') for d in drives]}")
		self.events.emit(USB_CHANGED, drives)

	def handle_file_uploaded(self, file_info):
		"""
		Classify a freshly stored upload and record it.
		"""
		classification = classify_video(file_info['filename'])
		video = {
			'id': file_info['id'],
			'filename': file_info['filename'],
			'savedAs': file_info['savedAs'],
			'path': file_info['path'],
			'size': file_info['size'],
			'mimeType': file_info['mimeType'],
			'category': classification['category'],
			'autoClassified': classification['autoClassified'],
			'confidence': classification['confidence'],
			'matchedRule': classification['matchedRule'],
			'uploadedAt': file_info['uploadedAt'],
			'classifiedAt': datetime.now(timezone.utc).isoformat(),
			'exportedAt': None
		}
		video = self.metadata.add_video(video)
		logger.info(f"Classified {video['filename']!r} as {video['category']} ({video['confidence']})")
		self.events.emit(VIDEO_ADDED, video)
		return video

	# Server

	def get_server_info(self):
		info = self.server.get_info()
		qr_url = self.session.get_upload_url(info['ip'], info['port'])
		info['qrUrl'] = qr_url
		info['qrImageUrl'] = f"{QR_API_URL}?{urlencode({'size': '200x200', 'data': qr_url})}"
		return info

	def start_server(self):
		return self.server.start()

	def stop_server(self):
		self.server.stop()

	# Videos

	def list_videos(self, category=None, exported=None):
		return self.metadata.get_videos(category=category, exported=exported)

	def classify_video(self, video_id, category):
		"""
		Manually move a video to another category. Raises InvalidCategory.
		"""
		return self.metadata.update_video(video_id, manual_classify(category))

	def bulk_classify(self, video_ids, category):
		classification = manual_classify(category)
		updated = []
		for video_id in video_ids:
			video = self.metadata.update_video(video_id, classification)
			if video:
				updated.append(video)
		return updated

	def delete_video(self, video_id):
		video = self.metadata.get_video(video_id)
		if not video:
			return False
		try:
			self.file_manager.delete_video(video.get('path'))
		except OSError as e:
			logger.error(f"Could not delete file for video {video_id}: {e}", exc_info=True)
			return False
		self.metadata.delete_video(video_id)
		return True

	def get_stats(self):
		return self.metadata.get_stats()

	def get_exports(self):
		return self.metadata.get_exports()

	# Drives and export

	def list_drives(self):
		return self.detector.get_drives()

	def abort_export(self):
		self.exporter.abort()

	def start_export(self, drive_id, video_ids=None):
		"""
		Export the given videos (all videos when video_ids is None) to a detected drive.
		"""
		all_videos = self.metadata.get_videos()
		if video_ids is not None:
			wanted = set(video_ids)
			videos = [v for v in all_videos if v['id'] in wanted]
		else:
			videos = all_videos

		drive = self.detector.find_drive(drive_id)
		if not drive:
			return {'success': False, 'error': 'USB drive not found'}

		try:
			result = self.exporter.export_videos(
				videos,
				drive['path'],
				on_progress=lambda progress: self.events.emit(EXPORT_PROGRESS, progress)
			)
		except ExportError as e:
			logger.warning(f"Export to {drive['path']} refused: {e}")
			result = {'success': False, 'error': str(e)}
			self.events.emit(EXPORT_COMPLETE, result)
			return result

		if result['success']:
			now = datetime.now(timezone.utc).isoformat()
			for copied in result['copied']:
				if copied.get('id'):
					self.metadata.update_video(copied['id'], {'exportedAt': now})

			result['exportRecord'] = self.metadata.add_export({
				'id': str(uuid.uuid4()),
				'timestamp': now,
				'destination': drive['path'],
				'driveLabel': drive.get('label'),
				'videoCount': len(result['copied']),
				'totalSize': result['totalSize'],
				'status': 'completed'
			})

		self.events.emit(EXPORT_COMPLETE, result)
		return result


def main():
	home = get_app_home()
	settings = get_settings(home)
	log_file = setup_logging(os.path.join(home, 'logs'), settings['log_level'])

	app = VideoSorterApp(settings=settings, home=home)
	try:
		app.start()
	except OSError as e:
		logger.error(f"Could not start upload server on port {settings['port']}: {e}", exc_info=True)
		sys.exit(1)

	info = app.get_server_info()
	print(f"Video Sorter listening on {info['ip']}:{info['port']}")
	print(f"Open on your phone: {info['qrUrl']}")
	print(f"QR code: {info['qrImageUrl']}")
	print(f"Data directory: {home}")
	print(f"Log file: {log_file}")

	try:
		while True:
			time.sleep(1)
	except KeyboardInterrupt:
		print("Shutting down Video Sorter...")
	finally:
		app.shutdown()


if __name__ == '__main__':
	main()
