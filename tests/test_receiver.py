import os
import re
from io import BytesIO

import pytest

from receiver import UploadServer, is_video_file, original_basename, sanitize_filename
from conftest import list_files


def upload(client, token, *files, field='files', headers=None):
	data = {field: [(BytesIO(content), name, mimetype) for name, content, mimetype in files]}
	url = '/upload' if token is None else f"/upload?token={token}"
	return client.post(url, data=data, content_type='multipart/form-data', headers=headers or {})


def test_sanitize_filename():
	assert sanitize_filename('My Video!!.MP4') == 'My_Video__.MP4'
	assert sanitize_filename('clip-01.mov') == 'clip-01.mov'


@pytest.mark.parametrize('filename, mimetype, expected', [
	('a.mp4', 'video/mp4', True),
	('a.MOV', 'application/octet-stream', True),
	('noext', 'video/quicktime', True),
	('notes.txt', 'text/plain', False),
])
def test_is_video_file(filename, mimetype, expected):
	assert is_video_file(filename, mimetype) is expected


def test_root_and_assets_need_no_token(client):
	assert client.get('/').status_code == 200
	assert client.get('/upload').status_code == 200
	response = client.get('/upload.js')
	assert response.status_code == 200
	assert response.mimetype == 'application/javascript'
	assert client.get('/upload.css').status_code == 200
	assert client.get('/upload.html').status_code == 200


@pytest.mark.parametrize('query', ['', '?token=', '?token=wrong'])
def test_protected_routes_reject_bad_tokens(client, query):
	for path in ('/status', '/info', '/api/stats'):
		response = client.get(path + query)
		assert response.status_code == 401
		assert response.get_json() == {
			'error': 'Unauthorized',
			'message': 'Invalid or missing session token'
		}


def test_token_accepted_in_query_or_header(client, session):
	assert client.get(f"/status?token={session.get_token()}").status_code == 200
	assert client.get('/status', headers={'X-Session-Token': session.get_token()}).status_code == 200


def test_status_and_info(client, session, upload_server):
	body = client.get(f"/status?token={session.get_token()}").get_json()
	assert body['status'] == 'ok'
	assert body['uptime'] >= 0
	assert body['timestamp']

	info = client.get(f"/info?token={session.get_token()}").get_json()
	assert info['port'] == upload_server.port
	assert info['uploadUrl'] == f"http://{info['ip']}:{upload_server.port}/upload"


def test_upload_without_token_is_rejected(client, upload_server, uploaded):
	response = upload(client, None, ('clip.mp4', b'data', 'video/mp4'))
	assert response.status_code == 401
	assert uploaded == []
	assert list_files(upload_server.upload_dir) == []


def test_upload_sanitizes_name_and_calls_back(client, session, upload_server, uploaded):
	response = upload(client, session.get_token(), ('My Video!!.MP4', b'0123456789', 'video/mp4'))
	assert response.status_code == 200
	body = response.get_json()
	assert body['success'] is True
	assert body['failed'] == []
	assert len(body['uploaded']) == 1

	saved_as = body['uploaded'][0]['savedAs']
	assert re.fullmatch(r'\d+-[A-Za-z0-9._\-]+', saved_as)
	assert saved_as.endswith('My_Video__.MP4')
	assert list_files(upload_server.upload_dir) == [saved_as]

	assert len(uploaded) == 1
	info = uploaded[0]
	assert info['filename'] == 'My Video!!.MP4'
	assert info['size'] == 10
	assert info['mimeType'] == 'video/mp4'
	assert info['path'] == os.path.join(upload_server.upload_dir, saved_as)
	assert info['id'] and info['uploadedAt']


@pytest.mark.parametrize('filename, expected', [
	('clip.mp4', 'clip.mp4'),
	('../../escaped.mp4', 'escaped.mp4'),
	('/etc/cron.d/clip.mp4', 'clip.mp4'),
	('..\\..\\evil.mp4', 'evil.mp4'),
	('C:\\Users\\me\\Videos\\IMG_0001.MOV', 'IMG_0001.MOV'),
	('folder/', 'upload'),
	('..', 'upload'),
])
def test_original_basename(filename, expected):
	assert original_basename(filename) == expected


def test_upload_path_in_filename_is_reduced_to_basename(client, session, upload_server, uploaded):
	response = upload(
		client,
		session.get_token(),
		('../../escaped.mp4', b'evil', 'video/mp4'),
		('/tmp/absolute.mp4', b'evil', 'video/mp4')
	)
	assert response.status_code == 200
	assert [info['filename'] for info in uploaded] == ['escaped.mp4', 'absolute.mp4']
	for info in uploaded:
		assert os.path.dirname(info['path']) == upload_server.upload_dir
	assert sorted(list_files(upload_server.upload_dir)) == sorted(info['savedAs'] for info in uploaded)


def test_upload_with_header_token(client, session, uploaded):
	response = upload(client, None, ('clip.mp4', b'data', 'video/mp4'), headers={'X-Session-Token': session.get_token()})
	assert response.status_code == 200
	assert len(uploaded) == 1


def test_callbacks_follow_request_order(client, session, uploaded):
	files = [(f"clip{n}.mp4", b'x' * n, 'video/mp4') for n in range(1, 4)]
	response = upload(client, session.get_token(), *files)
	assert response.status_code == 200
	assert [info['filename'] for info in uploaded] == ['clip1.mp4', 'clip2.mp4', 'clip3.mp4']
	assert len({info['savedAs'] for info in uploaded}) == 3


def test_non_video_file_is_rejected(client, session, upload_server, uploaded):
	response = upload(client, session.get_token(), ('notes.txt', b'hello', 'text/plain'))
	assert response.status_code == 400
	assert 'File type not allowed' in response.get_json()['error']
	assert uploaded == []
	assert list_files(upload_server.upload_dir) == []


def test_mixed_upload_excludes_non_video(client, session, upload_server, uploaded):
	response = upload(
		client,
		session.get_token(),
		('notes.txt', b'hello', 'text/plain'),
		('clip.mp4', b'data', 'video/mp4')
	)
	assert response.status_code == 200
	body = response.get_json()
	assert [u['filename'] for u in body['uploaded']] == ['clip.mp4']
	assert [r['filename'] for r in body['rejected']] == ['notes.txt']
	assert body['failed'] == []
	assert len(list_files(upload_server.upload_dir)) == 1


def test_extension_is_enough_when_mime_is_wrong(client, session, uploaded):
	response = upload(client, session.get_token(), ('IMG_0001.MOV', b'data', 'application/octet-stream'))
	assert response.status_code == 200
	assert uploaded[0]['filename'] == 'IMG_0001.MOV'


def test_file_too_large(tmp_path, session):
	uploaded = []
	server = UploadServer(str(tmp_path / 'raw'), session, uploaded.append, port=0, max_file_size=8)
	client = server.app.test_client()
	response = upload(
		client,
		session.get_token(),
		('small.mp4', b'1234', 'video/mp4'),
		('big.mp4', b'123456789', 'video/mp4')
	)
	assert response.status_code == 400
	assert response.get_json()['error'] == 'File too large'
	assert uploaded == []
	assert list_files(server.upload_dir) == []


def test_too_many_files(tmp_path, session):
	server = UploadServer(str(tmp_path / 'raw'), session, port=0, max_files=2)
	client = server.app.test_client()
	files = [(f"clip{n}.mp4", b'x', 'video/mp4') for n in range(3)]
	response = upload(client, session.get_token(), *files)
	assert response.status_code == 400
	assert 'Too many files' in response.get_json()['error']


def test_unexpected_field(client, session):
	response = upload(client, session.get_token(), ('clip.mp4', b'x', 'video/mp4'), field='video')
	assert response.status_code == 400


def test_callback_error_is_reported_per_file(tmp_path, session):
	def on_file_uploaded(info):
		if info['filename'] == 'bad.mp4':
			raise RuntimeError('disk full')

	server = UploadServer(str(tmp_path / 'raw'), session, on_file_uploaded, port=0)
	client = server.app.test_client()
	response = upload(
		client,
		session.get_token(),
		('bad.mp4', b'x', 'video/mp4'),
		('good.mp4', b'y', 'video/mp4')
	)
	assert response.status_code == 200
	body = response.get_json()
	assert [u['filename'] for u in body['uploaded']] == ['good.mp4']
	assert body['failed'] == [{'filename': 'bad.mp4', 'error': 'disk full'}]


def test_stats_route_uses_provider(tmp_path, session):
	server = UploadServer(str(tmp_path / 'raw'), session, port=0, stats_provider=lambda: {'totalVideos': 3})
	client = server.app.test_client()
	body = client.get(f"/api/stats?token={session.get_token()}").get_json()
	assert body == {'success': True, 'totalVideos': 3}


def test_start_and_stop_are_idempotent(upload_server):
	try:
		first = upload_server.start()
		second = upload_server.start()
		assert first['port'] == second['port'] != 0
		assert upload_server.get_info()['running'] is True
	finally:
		upload_server.stop()
	upload_server.stop()
	assert upload_server.is_running is False
