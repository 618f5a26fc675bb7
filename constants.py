"""
Values shared between the upload server, the classifier, the exporter and the UI.
"""

CATEGORIES = [
	'Class 7',
	'Class 8',
	'Class 9',
	'Class 10',
	'Gym Videos',
	'Other',
]

DEFAULT_CATEGORY = 'Other'

VIDEO_EXTENSIONS = [
	'.mp4',
	'.mkv',
	'.avi',
	'.mov',
	'.wmv',
	'.flv',
	'.webm',
	'.m4v',
]

# Phones frequently misreport these, so the extension check is OR'd with them
VIDEO_MIME_TYPES = [
	'video/mp4',
	'video/mkv',
	'video/avi',
	'video/mov',
	'video/wmv',
	'video/flv',
	'video/webm',
	'video/x-matroska',
	'video/quicktime',
	'video/x-msvideo',
	'video/x-ms-wmv',
]

DEFAULT_HOST = '0.0.0.0'
DEFAULT_PORT = 3000
POLL_INTERVAL = 3.0  # seconds between drive polls
MAX_FILES = 50
MAX_FILE_SIZE = 10 * 1024 * 1024 * 1024  # 10GB per file
CHUNK_SIZE = 8 * 1024 * 1024  # 8MB chunks when streaming to disk
SAVE_DELAY = 1.0  # metadata debounce window in seconds

METADATA_VERSION = '1.0'

QR_API_URL = 'https://api.qrserver.com/v1/create-qr-code/'

# Event channels pushed to the UI
VIDEO_ADDED = 'video:added'
USB_CHANGED = 'usb:changed'
EXPORT_PROGRESS = 'export:progress'
EXPORT_COMPLETE = 'export:complete'
