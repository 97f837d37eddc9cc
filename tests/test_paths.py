def test_paths_respect_env_overrides(tmp_path, monkeypatch):
    monkeypatch.setenv("STREAMKEEPER_LOGS_DIR", str(tmp_path / "l"))
    monkeypatch.setenv("STREAMKEEPER_AUTH_DIR", str(tmp_path / "a"))
    monkeypatch.setenv("STREAMKEEPER_OUT_DIR", str(tmp_path / "o"))

    from streamkeeper.env import paths

    assert paths.logs_dir() == (tmp_path / "l").resolve()
    assert paths.auth_dir().exists()
    assert paths.out_dir().exists()


def test_file_helpers(tmp_path, monkeypatch):
    monkeypatch.setenv("STREAMKEEPER_AUTH_DIR", str(tmp_path / "a"))

    from streamkeeper.env import paths

    assert paths.auth_token_file().name == "credentials.json"
    assert paths.auth_client_secrets_file("other.json").parent == (tmp_path / "a").resolve()


def test_module_logs_dir(tmp_path, monkeypatch):
    monkeypatch.setenv("STREAMKEEPER_LOGS_DIR", str(tmp_path))

    from streamkeeper.env import paths

    mod = paths.module_logs_dir("sync")

    assert mod.exists()
    assert mod.name == "sync"
