from portal_client.token_store import STORAGE_KEY, TokenStore


def test_token_survives_a_restart(tmp_path):
    path = tmp_path / "state" / "session.json"
    TokenStore(path).save("abc123")

    assert TokenStore(path).token == "abc123"
    assert STORAGE_KEY in path.read_text()


def test_clear_removes_the_file(tmp_path):
    store = TokenStore(tmp_path / "session.json")
    store.save("abc123")

    store.clear()
    store.clear()

    assert store.token is None
    assert not store.path.exists()


def test_unreadable_file_means_no_token(tmp_path):
    path = tmp_path / "session.json"
    path.write_text("{not json")

    assert TokenStore(path).token is None

    path.write_text('{"something_else": "x"}')
    assert TokenStore(path).token is None
