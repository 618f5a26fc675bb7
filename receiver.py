from flask import Flask, request, jsonify, Response
from flask_cors import CORS
from werkzeug.exceptions import RequestEntityTooLarge
from werkzeug.serving import make_server
import os
import re
import socket
import threading
import time
import uuid
import logging
from datetime import datetime, timezone

from constants import (
	DEFAULT_HOST,
	DEFAULT_PORT,
	MAX_FILES,
	MAX_FILE_SIZE,
	CHUNK_SIZE,
	VIDEO_EXTENSIONS,
	VIDEO_MIME_TYPES,
)
from errors import Unauthorized, ValidationError, FileTooLarge, FileTypeNotAllowed, TooManyFiles
from upload_page import UPLOAD_HTML, UPLOAD_JS, UPLOAD_CSS

logger = logging.getLogger(__name__)

# Successful uploads are always logged, even when the root level is WARNING
upload_logger = logging.getLogger('uploads')

PROCESS_STARTED = time.monotonic()

UPLOAD_FIELD = 'files'
TOKEN_PARAM = 'token'
TOKEN_HEADER = 'X-Session-Token'

UNSAFE_FILENAME_CHARS = re.compile(r'[^A-Za-z0-9.-]')
PATH_SEPARATORS = re.compile(r'[\\/]')

STATIC_ASSETS = {
	'upload.html': (UPLOAD_HTML, 'text/html'),
	'upload.js': (UPLOAD_JS, 'application/javascript'),
	'upload.css': (UPLOAD_CSS, 'text/css'),
}


def original_basename(filename):
	"""
	Last path component of a client-supplied filename, splitting on both '/' and '\\'.
	"""
	name = PATH_SEPARATORS.split(filename or '')[-1]
	return name if name not in ('', '.', '..') else 'upload'

def sanitize_filename(filename):
	"""
	Replace every character outside [A-Za-z0-9.-] with '_'.
	"""
	return UNSAFE_FILENAME_CHARS.sub('_', filename)

def is_video_file(filename, mimetype):
	"""
	Either a known video MIME type or a known video extension is enough.
	"""
	ext = os.path.splitext(filename or '')[1].lower()
	return (mimetype or '').lower() in VIDEO_MIME_TYPES or ext in VIDEO_EXTENSIONS

def get_local_ip():
	"""
	First non-loopback IPv4 address of this machine, or 'localhost'.
	"""
	# Connecting a UDP socket sends nothing but picks the outbound interface
	try:
		with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as s:
			s.connect(('10.255.255.255', 1))
			ip = s.getsockname()[0]
			if ip and not ip.startswith('127.'):
				return ip
	except OSError:
		pass

	try:
		for info in socket.getaddrinfo(socket.gethostname(), None, socket.AF_INET):
			ip = info[4][0]
			if not ip.startswith('127.'):
				return ip
	except OSError:
		pass
	return 'localhost'


class UploadServer:
	"""
	LAN facing HTTP server the phone uploads to.

	Everything except the upload page itself requires the session token, passed
	as ?token= or in the X-Session-Token header. on_file_uploaded is called once
	per stored file, in request order, before the response goes out.
	"""

	def __init__(self, upload_dir, session, on_file_uploaded=None, port=DEFAULT_PORT,
			host=DEFAULT_HOST, max_files=MAX_FILES, max_file_size=MAX_FILE_SIZE, stats_provider=None):
		self.upload_dir = upload_dir
		self.session = session
		self.on_file_uploaded = on_file_uploaded or (lambda info: None)
		self.port = port
		self.host = host
		self.max_files = max_files
		self.max_file_size = max_file_size
		self.stats_provider = stats_provider

		self.server = None
		self.server_thread = None
		self.is_running = False
		self._lifecycle_lock = threading.Lock()

		self.app = Flask(__name__)
		CORS(self.app)  # Phones load the page from the LAN address
		self.app.config['MAX_CONTENT_LENGTH'] = max_files * max_file_size

		self._setup_routes()

	def is_public_path(self, path, method):
		if path == '/' or path.startswith('/upload.'):
			return True
		# The page itself, the form then posts back with the token
		return path == '/upload' and method == 'GET'

	def _setup_routes(self):
		app = self.app

		@app.before_request
		def validate_token():
			if request.method == 'OPTIONS' or self.is_public_path(request.path, request.method):
				return None

			token = request.args.get(TOKEN_PARAM) or request.headers.get(TOKEN_HEADER)
			if not self.session.validate_token(token):
				logger.warning(f"Rejected request to {request.path} from {request.remote_addr}: bad session token")
				raise Unauthorized()
			return None

		@app.errorhandler(Unauthorized)
		def unauthorized(e):
			return jsonify({
				'error': 'Unauthorized',
				'message': str(e)
			}), 401

		@app.errorhandler(RequestEntityTooLarge)
		def request_too_large(e):
			return jsonify({'error': 'File too large'}), 400

		@app.route('/', methods=['GET'])
		@app.route('/upload', methods=['GET'])
		def upload_page():
			"""
			Serve the mobile upload page.
			"""
			return Response(UPLOAD_HTML, mimetype='text/html')

		@app.route('/upload.<ext>', methods=['GET'])
		def upload_asset(ext):
			asset = STATIC_ASSETS.get(f"upload.{ext}")
			if asset is None:
				return jsonify({'error': 'File not found'}), 404
			body, mimetype = asset
			return Response(body, mimetype=mimetype)

		@app.route('/status', methods=['GET'])
		def status():
			return jsonify({
				'status': 'ok',
				'uptime': time.monotonic() - PROCESS_STARTED,
				'timestamp': datetime.now(timezone.utc).isoformat()
			})

		@app.route('/info', methods=['GET'])
		def info():
			ip = get_local_ip()
			return jsonify({
				'ip': ip,
				'port': self.port,
				'uploadUrl': f"http://{ip}:{self.port}/upload"
			})

		@app.route('/api/stats', methods=['GET'])
		def stats():
			"""
			Library statistics for the desktop UI.
			"""
			try:
				data = self.stats_provider() if self.stats_provider else {}
				return jsonify({'success': True, **data}), 200
			except Exception as e:
				logger.error(f"Error getting stats: {e}", exc_info=True)
				return jsonify({'success': False, 'error': str(e)}), 500

		@app.route('/upload', methods=['POST'])
		def upload():
			try:
				return self.handle_upload()
			except ValidationError as e:
				return jsonify({'success': False, 'error': str(e)}), 400
			except RequestEntityTooLarge:
				return jsonify({'success': False, 'error': 'File too large'}), 400
			except Exception as e:
				logger.error(f"Upload error: {e}", exc_info=True)
				return jsonify({'error': 'Upload failed', 'message': str(e)}), 500

	def _collect_parts(self):
		unexpected = [key for key in request.files.keys() if key != UPLOAD_FIELD]
		if unexpected:
			raise ValidationError(f"Unexpected field: {unexpected[0]}")

		parts = [f for f in request.files.getlist(UPLOAD_FIELD) if f.filename]
		if len(parts) > self.max_files:
			raise TooManyFiles(self.max_files)
		return parts

	def _reserve_path(self, safe_name):
		"""
		Open <ms timestamp>-<safe name> exclusively; bump the timestamp on collision.
		"""
		timestamp = int(time.time() * 1000)
		while True:
			saved_as = f"{timestamp}-{safe_name}"
			path = os.path.join(self.upload_dir, saved_as)
			try:
				return saved_as, path, open(path, 'xb')
			except FileExistsError:
				timestamp += 1

	def store_file(self, part, filename):
		"""
		Stream one file part into the upload directory. Returns (saved_as, path, size).
		"""
		os.makedirs(self.upload_dir, exist_ok=True)
		saved_as, path, out = self._reserve_path(sanitize_filename(filename))
		size = 0
		try:
			with out:
				while True:
					chunk = part.stream.read(CHUNK_SIZE)
					if not chunk:
						break
					size += len(chunk)
					if size > self.max_file_size:
						raise FileTooLarge(filename, self.max_file_size)
					out.write(chunk)
		except BaseException:
			os.remove(path)
			raise
		return saved_as, path, size

	def handle_upload(self):
		parts = self._collect_parts()

		accepted = []
		rejected = []
		for part in parts:
			# Browsers may send a relative or full client path; only the last component is kept
			filename = original_basename(part.filename)
			if is_video_file(filename, part.mimetype):
				accepted.append((part, filename))
			else:
				logger.warning(f"Rejected non-video upload {filename!r} ({part.mimetype})")
				rejected.append({
					'filename': filename,
					'error': f"File type not allowed: {part.mimetype}"
				})

		if not accepted:
			if rejected:
				first = parts[0]
				raise FileTypeNotAllowed(rejected[0]['filename'], first.mimetype)
			raise ValidationError('No files in request')

		# Store every file first; if one is too large or can't be written, nothing from this request is kept
		stored = []
		try:
			for part, filename in accepted:
				saved_as, path, size = self.store_file(part, filename)
				stored.append((part, filename, saved_as, path, size))
		except Exception:
			for _part, _filename, _saved_as, path, _size in stored:
				if os.path.exists(path):
					os.remove(path)
			raise

		uploaded_files = []
		errors = []
		for part, filename, saved_as, path, size in stored:
			try:
				video_info = {
					'id': str(uuid.uuid4()),
					'filename': filename,
					'savedAs': saved_as,
					'path': path,
					'size': size,
					'mimeType': part.mimetype,
					'uploadedAt': datetime.now(timezone.utc).isoformat()
				}
				self.on_file_uploaded(video_info)
				uploaded_files.append(video_info)
				upload_logger.info(f"Successfully received and saved video: {path} ({size} bytes, original name {filename!r})")
			except Exception as e:
				logger.error(f"Error processing upload {filename}: {e}", exc_info=True)
				errors.append({'filename': filename, 'error': str(e)})

		return jsonify({
			'success': True,
			'uploaded': uploaded_files,
			'failed': errors,
			'rejected': rejected,
			'message': f"Successfully uploaded {len(uploaded_files)} file(s)"
		}), 200

	def start(self):
		"""
		Start serving in a background thread. Calling it again while running just
		returns the current address.
		"""
		with self._lifecycle_lock:
			if self.is_running:
				return {'ip': get_local_ip(), 'port': self.port}

			self.server = make_server(self.host, self.port, self.app, threaded=True)
			# port 0 asks the OS for a free port
			self.port = self.server.server_port
			self.server_thread = threading.Thread(
				target=self.server.serve_forever,
				name='upload-server',
				daemon=True
			)
			self.server_thread.start()
			self.is_running = True

		ip = get_local_ip()
		logger.info(f"Upload server running at http://{ip}:{self.port}")
		return {'ip': ip, 'port': self.port}

	def stop(self):
		with self._lifecycle_lock:
			if not self.server or not self.is_running:
				return
			self.server.shutdown()
			self.server.server_close()
			if self.server_thread is not None:
				self.server_thread.join()
			self.server = None
			self.server_thread = None
			self.is_running = False
		logger.info("Upload server stopped")

	def get_info(self):
		ip = get_local_ip()
		return {
			'ip': ip,
			'port': self.port,
			'running': self.is_running,
			'uploadUrl': f"http://{ip}:{self.port}",
			'token': self.session.get_token()
		}
