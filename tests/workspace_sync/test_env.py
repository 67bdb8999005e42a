import os

from packages import env


def test_load_env_reads_explicit_and_variable_files(tmp_path, monkeypatch):
    explicit = tmp_path / "explicit.env"
    explicit.write_text("WORKSPACE_SYNC_TEST_EXPLICIT=one\n", encoding="utf-8")
    pointed = tmp_path / "pointed.env"
    pointed.write_text("WORKSPACE_SYNC_TEST_POINTED=two\n", encoding="utf-8")

    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv(env.ENV_FILE_VARIABLE, str(pointed))
    monkeypatch.delenv("WORKSPACE_SYNC_TEST_EXPLICIT", raising=False)
    monkeypatch.delenv("WORKSPACE_SYNC_TEST_POINTED", raising=False)
    env.reset_env_cache()

    loaded = env.load_env(extra_paths=[explicit, tmp_path / "missing.env"])

    assert loaded[:2] == [explicit.resolve(), pointed.resolve()]
    assert os.environ["WORKSPACE_SYNC_TEST_EXPLICIT"] == "one"
    assert os.environ["WORKSPACE_SYNC_TEST_POINTED"] == "two"
    monkeypatch.delenv("WORKSPACE_SYNC_TEST_EXPLICIT")
    monkeypatch.delenv("WORKSPACE_SYNC_TEST_POINTED")


def test_load_env_is_cached_until_reset(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv(env.ENV_FILE_VARIABLE, raising=False)
    env.reset_env_cache()

    first = env.load_env()
    (tmp_path / ".env").write_text("WORKSPACE_SYNC_TEST_LATE=1\n", encoding="utf-8")

    assert env.load_env() == first
    env.reset_env_cache()
    assert (tmp_path / ".env").resolve() in env.load_env()
    monkeypatch.delenv("WORKSPACE_SYNC_TEST_LATE", raising=False)
    env.reset_env_cache()
