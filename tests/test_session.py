from session import SessionManager


def test_generate_token_has_enough_entropy():
	manager = SessionManager()
	token = manager.generate_token()
	assert len(token) == 32
	int(token, 16)
	assert manager.get_info()['hasToken'] is True
	assert manager.get_info()['createdAt']


def test_tokens_differ_between_sessions():
	assert SessionManager().generate_token() != SessionManager().generate_token()


def test_validate_token():
	manager = SessionManager()
	token = manager.generate_token()
	assert manager.validate_token(token)
	assert not manager.validate_token(token + 'x')
	assert not manager.validate_token('')
	assert not manager.validate_token(None)


def test_no_token_configured_rejects_everything():
	manager = SessionManager()
	assert not manager.validate_token('')
	assert not manager.validate_token(None)
	assert not manager.validate_token('anything')


def test_upload_url():
	manager = SessionManager()
	token = manager.generate_token()
	assert manager.get_upload_url('192.168.1.20', 3000) == f"http://192.168.1.20:3000/?token={token}"


def test_clear():
	manager = SessionManager()
	token = manager.generate_token()
	manager.clear()
	assert manager.get_token() is None
	assert not manager.validate_token(token)
