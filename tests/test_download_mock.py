"""
The download command against a fake `requests.get`; no network access.
"""

import pytest

from click.testing import CliRunner
from unittest.mock import Mock, patch

from PCM.__main__ import HPO_LATEST_RELEASE_API, main


def fake_response(**kwargs) -> Mock:
    response = Mock(status_code=200, **kwargs)
    response.raise_for_status.return_value = None
    return response


def test_download_resolves_the_latest_release(tmp_path):
    responses = {
        HPO_LATEST_RELEASE_API: fake_response(json=Mock(return_value={"tag_name": "v2024-04-26"})),
    }

    def fake_get(url, **kwargs):
        return responses.get(url) or fake_response(content=b'{"graphs": []}')

    target = tmp_path / "hpo"
    with patch("PCM.__main__.requests.get", side_effect=fake_get) as get:
        result = CliRunner().invoke(main, ["download", "-d", str(target)])

    assert result.exit_code == 0, result.output
    assert (target / "hp.json").read_bytes() == b'{"graphs": []}'
    requested = [c.args[0] for c in get.call_args_list]
    assert requested[0] == HPO_LATEST_RELEASE_API
    assert requested[1].endswith("/releases/download/v2024-04-26/hp.json")


@pytest.mark.parametrize("version", ["2024-04-26", "v2024-04-26"])
def test_download_pinned_release(tmp_path, version):
    with patch("PCM.__main__.requests.get", return_value=fake_response(content=b"{}")) as get:
        result = CliRunner().invoke(main, ["download", "-d", str(tmp_path), "-v", version])

    assert result.exit_code == 0, result.output
    get.assert_called_once()
    assert get.call_args.args[0].endswith("/releases/download/v2024-04-26/hp.json")
    assert "v2024-04-26" in result.output


def test_download_reports_http_errors(tmp_path):
    failing = fake_response()
    failing.raise_for_status.side_effect = RuntimeError("404 Client Error")
    with patch("PCM.__main__.requests.get", return_value=failing):
        result = CliRunner().invoke(main, ["download", "-d", str(tmp_path), "-v", "1999-01-01"])

    assert result.exit_code != 0
    assert not (tmp_path / "hp.json").exists()
