import os

import pytest

from metadata_store import MetadataStore
from receiver import UploadServer
from session import SessionManager


class FakeLister:
	"""Returns queued snapshots, repeating the last one."""

	def __init__(self, *snapshots):
		self.snapshots = list(snapshots)
		self.calls = 0

	def list_drives(self):
		self.calls += 1
		if len(self.snapshots) > 1:
			return self.snapshots.pop(0)
		return list(self.snapshots[0]) if self.snapshots else []


def make_drive(path, label='USB', device=None, size=1000, free=1000):
	return {
		'device': device or label,
		'label': label,
		'path': str(path),
		'size': size,
		'freeSpace': free,
		'isUSB': True
	}


@pytest.fixture
def session():
	manager = SessionManager()
	manager.generate_token()
	return manager


@pytest.fixture
def uploaded():
	return []


@pytest.fixture
def upload_server(tmp_path, session, uploaded):
	return UploadServer(
		upload_dir=str(tmp_path / 'raw'),
		session=session,
		on_file_uploaded=uploaded.append,
		port=0
	)


@pytest.fixture
def client(upload_server):
	upload_server.app.config['TESTING'] = True
	return upload_server.app.test_client()


@pytest.fixture
def store(tmp_path):
	return MetadataStore(str(tmp_path / 'metadata.json'), save_delay=0.05)


@pytest.fixture
def make_source(tmp_path):
	source_dir = tmp_path / 'source'
	source_dir.mkdir()

	def _make(filename, content=b'video-bytes', category='Other', video_id=None):
		path = source_dir / filename
		path.write_bytes(content)
		return {
			'id': video_id or filename,
			'path': str(path),
			'filename': filename,
			'category': category,
			'size': len(content)
		}
	return _make


def list_files(directory):
	return sorted(os.listdir(directory)) if os.path.isdir(directory) else []
