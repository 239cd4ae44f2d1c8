#!/usr/bin/env python3
"""
Tests for the developer CLI.

Run with: pytest tests/test_cli.py -v
"""
import json
import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "tools"))

import cli  # noqa: E402

from slackrouter.signature import HEADER_SIGNATURE, HEADER_TIMESTAMP, sign

from conftest import NOW, SECRET

URL_VERIFICATION = json.dumps({"type": "url_verification", "challenge": "abc"})


class TestSignCommand:
    def test_sign(self, capsys):
        code = cli.main(["sign", "--secret", SECRET, "--timestamp", str(NOW), "--body", URL_VERIFICATION])

        headers = json.loads(capsys.readouterr().out)
        assert code == 0
        assert headers == {
            HEADER_TIMESTAMP: str(NOW),
            HEADER_SIGNATURE: sign(SECRET, NOW, URL_VERIFICATION),
        }

    def test_sign_file(self, capsys, tmp_path):
        path = tmp_path / "event.json"
        path.write_text(URL_VERIFICATION)

        cli.main(["sign", "--secret", SECRET, "--timestamp", str(NOW), "--file", str(path)])

        headers = json.loads(capsys.readouterr().out)
        assert headers[HEADER_SIGNATURE] == sign(SECRET, NOW, URL_VERIFICATION)

    def test_body_or_file_required(self):
        with pytest.raises(SystemExit):
            cli.main(["sign", "--secret", SECRET])


class TestVerifyCommand:
    def _args(self, signature):
        return [
            "verify", "--secret", SECRET, "--timestamp", str(NOW), "--signature", signature,
            "--now", str(NOW), "--body", URL_VERIFICATION,
        ]

    def test_accept(self, capsys):
        code = cli.main(self._args(sign(SECRET, NOW, URL_VERIFICATION)))

        assert code == 0
        assert capsys.readouterr().out.strip() == "ACCEPT"

    def test_reject(self, capsys):
        code = cli.main(self._args(sign("wrong", NOW, URL_VERIFICATION)))

        assert code == 1
        assert capsys.readouterr().out.startswith("REJECT: SignatureMismatch")


class TestInvokeCommand:
    def test_invoke_insecure(self, capsys):
        code = cli.main(["invoke", "--insecure", "--body", URL_VERIFICATION])

        lines = capsys.readouterr().out.splitlines()
        assert code == 0
        assert lines[0] == "200"
        assert json.loads(lines[1]) == {"challenge": "abc"}

    def test_invoke_signed_interaction(self, capsys):
        body = json.dumps({"type": "shortcut", "callback_id": "open_ticket"})

        code = cli.main(["invoke", "--interactions", "--secret", SECRET, "--body", body])

        assert code == 0
        assert capsys.readouterr().out.splitlines() == ["200"]

    def test_invoke_verbose_error(self, capsys):
        code = cli.main(["invoke", "--insecure", "--verbose", "--body", '{"type": "nope"}'])

        lines = capsys.readouterr().out.splitlines()
        assert code == 1
        assert lines == ["400", "unknown event type: nope: Bad Request"]

    def test_invoke_needs_secret_or_insecure(self):
        assert cli.main(["invoke", "--body", URL_VERIFICATION]) == 2

    def test_secret_and_insecure_conflict(self):
        with pytest.raises(SystemExit):
            cli.main(["invoke", "--insecure", "--secret", SECRET, "--body", URL_VERIFICATION])
