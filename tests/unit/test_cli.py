"""Unit tests for the command line front end."""

import base64
from unittest.mock import patch

import pytest

from crosskey import cli

SALT = "AAAAAAAAAAAAAAAAAAAAAA=="


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("CROSSKEY_ENVIRONMENT", "CROSSKEY_CHUNK_SIZE", "CROSSKEY_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("TEST_PASSWORD", "correct-horse")


def _out(capsys):
    return capsys.readouterr().out.strip()


@pytest.mark.parametrize("env", ["native", "subtle"])
def test_salt(capsys, env):
    assert cli.main(["--env", env, "salt"]) == 0
    assert len(base64.b64decode(_out(capsys))) == 16


def test_key_and_fingerprint_agree_across_envs(capsys):
    results = {}
    for env in ("native", "subtle"):
        for command in ("key", "fingerprint"):
            args = ["--env", env, command, "--salt", SALT, "--password-env", "TEST_PASSWORD"]
            assert cli.main(args) == 0
            results[(env, command)] = _out(capsys)

    assert results[("native", "key")] == results[("subtle", "key")]
    assert results[("native", "fingerprint")] == results[("subtle", "fingerprint")]
    assert results[("native", "key")] != results[("native", "fingerprint")]


def test_password_prompt_used_without_env(capsys):
    with patch("crosskey.cli.getpass.getpass", return_value="correct-horse") as prompt:
        assert cli.main(["key", "--salt", SALT]) == 0
    prompt.assert_called_once()
    prompted = _out(capsys)

    cli.main(["key", "--salt", SALT, "--password-env", "TEST_PASSWORD"])
    assert _out(capsys) == prompted


def test_encrypt_then_decrypt_text(capsys):
    base = ["--salt", SALT, "--password-env", "TEST_PASSWORD"]
    assert cli.main(["encrypt", *base, "hello world"]) == 0
    ciphertext = _out(capsys)

    assert cli.main(["--env", "subtle", "decrypt", *base, ciphertext]) == 0
    assert _out(capsys) == "hello world"


def test_encrypt_reads_stdin(capsys, monkeypatch):
    import io

    monkeypatch.setattr("sys.stdin", io.StringIO("from stdin"))
    key = base64.b64encode(bytes(32)).decode()
    assert cli.main(["encrypt", "--salt", SALT, "--key", key]) == 0
    ciphertext = _out(capsys)

    assert cli.main(["decrypt", "--salt", SALT, "--key", key, ciphertext]) == 0
    assert _out(capsys) == "from stdin"


def test_file_commands(tmp_path):
    key = base64.b64encode(bytes(range(32))).decode()
    src = tmp_path / "in.bin"
    enc = tmp_path / "in.enc"
    dec = tmp_path / "in.dec"
    src.write_bytes(b"payload" * 1000)

    assert cli.main(["encrypt-file", "--salt", SALT, "--key", key, str(src), str(enc)]) == 0
    assert cli.main(["decrypt-file", "--salt", SALT, "--key", key, str(enc), str(dec)]) == 0
    assert dec.read_bytes() == src.read_bytes()


def test_file_commands_need_native(tmp_path, capsys):
    key = base64.b64encode(bytes(32)).decode()
    code = cli.main(
        ["--env", "subtle", "encrypt-file", "--salt", SALT, "--key", key, "a", "b"]
    )
    assert code == 1
    assert "requires the native environment" in capsys.readouterr().err


def test_errors_reported_without_secrets(capsys):
    key = base64.b64encode(bytes(32)).decode()
    code = cli.main(["decrypt", "--salt", SALT, "--key", key, "AAAA"])
    err = capsys.readouterr().err
    assert code == 1
    assert err.startswith("error: ")
    assert key not in err


def test_missing_password_env(capsys):
    code = cli.main(["key", "--salt", SALT, "--password-env", "NOT_SET_ANYWHERE"])
    assert code == 1
    assert "NOT_SET_ANYWHERE is not set" in capsys.readouterr().err


def test_bad_configuration(monkeypatch, capsys):
    monkeypatch.setenv("CROSSKEY_CHUNK_SIZE", "7")
    assert cli.main(["salt"]) == 1
    assert "CROSSKEY_CHUNK_SIZE" in capsys.readouterr().err


@pytest.mark.parametrize("command", ["encrypt-file", "decrypt-file"])
def test_missing_input_file(tmp_path, capsys, command):
    key = base64.b64encode(bytes(32)).decode()
    code = cli.main(
        [command, "--salt", SALT, "--key", key, str(tmp_path / "nope"), str(tmp_path / "out")]
    )
    assert code == 1
    assert capsys.readouterr().err.startswith("error: ")
    assert not (tmp_path / "out").exists()


def test_encrypt_stdin_drops_trailing_newline(capsys, monkeypatch):
    import io

    key = base64.b64encode(bytes(32)).decode()
    assert cli.main(["encrypt", "--salt", SALT, "--key", key, "hi"]) == 0
    from_arg = _out(capsys)

    monkeypatch.setattr("sys.stdin", io.StringIO("hi\n"))
    assert cli.main(["encrypt", "--salt", SALT, "--key", key]) == 0
    assert _out(capsys) == from_arg
