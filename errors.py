"""
Exceptions raised by the intake and export pipeline.

Per-file problems (a duplicate on the drive, one failed copy) are recorded
outcomes and never raised. Corrupt metadata and failed drive detection are
logged and recovered from, so they have no exception class either.
"""


class VideoSorterError(Exception):
	"""Base class for all application errors."""


class Unauthorized(VideoSorterError):
	"""Missing or wrong session token. The message never says which."""

	def __init__(self):
		super().__init__('Invalid or missing session token')


class ValidationError(VideoSorterError, ValueError):
	"""An uploaded file failed a size or type check."""


class FileTooLarge(ValidationError):
	def __init__(self, filename=None, limit=None):
		self.filename = filename
		self.limit = limit
		super().__init__('File too large')


class FileTypeNotAllowed(ValidationError):
	def __init__(self, filename, mimetype):
		self.filename = filename
		self.mimetype = mimetype
		super().__init__(f"File type not allowed: {mimetype}")


class TooManyFiles(ValidationError):
	def __init__(self, limit):
		self.limit = limit
		super().__init__(f"Too many files (max {limit})")


class InvalidCategory(VideoSorterError, ValueError):
	def __init__(self, category):
		self.category = category
		super().__init__(f"Invalid category: {category}")


class ExportError(VideoSorterError, RuntimeError):
	"""Raised before any file is touched; the export has no side effects."""


class ExportInProgress(ExportError):
	def __init__(self):
		super().__init__('Export already in progress')


class DestinationNotFound(ExportError):
	def __init__(self, destination):
		self.destination = destination
		super().__init__(f"Destination not found: {destination}")


class InsufficientSpace(ExportError):
	def __init__(self, required, available, message=None):
		self.required = required
		self.available = available
		super().__init__(message or f"Insufficient space. Need {required} bytes, available {available} bytes")
