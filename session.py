import hmac
import secrets
from datetime import datetime, timezone


class SessionManager:
	"""
	Owns the single shared upload token for this run of the app.
	The upload server is handed this object at construction and asks it to validate requests.
	"""

	TOKEN_BYTES = 16

	def __init__(self):
		self.token = None
		self.created_at = None

	def generate_token(self):
		self.token = secrets.token_hex(self.TOKEN_BYTES)
		self.created_at = datetime.now(timezone.utc).isoformat()
		return self.token

	def validate_token(self, provided_token):
		"""
		True only when a token is configured and the provided one matches exactly.
		"""
		if not self.token or not provided_token:
			return False
		return hmac.compare_digest(str(provided_token).encode('utf-8'), self.token.encode('utf-8'))

	def get_token(self):
		return self.token

	def get_upload_url(self, ip, port, scheme='http'):
		return f"{scheme}://{ip}:{port}/?token={self.token}"

	def get_info(self):
		return {
			'token': self.token,
			'createdAt': self.created_at,
			'hasToken': bool(self.token)
		}

	def clear(self):
		self.token = None
		self.created_at = None
