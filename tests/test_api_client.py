"""
Unit tests for studio_utils/api_client.py.

The HTTP session is mocked; no request leaves the process.
"""

import pytest
import numpy as np
import requests
from studio_core.errors import StudioApiError
from studio_utils.api_client import StudioApiClient


def _response(mocker, ok=True, status=200, payload=None, json_error=False):
    response = mocker.Mock()
    response.ok = ok
    response.status_code = status
    if json_error:
        response.json.side_effect = ValueError("no json")
    else:
        response.json.return_value = payload if payload is not None else {}
    return response


@pytest.fixture
def http(mocker):
    return mocker.Mock()


@pytest.fixture
def client(http):
    return StudioApiClient(base_url="http://backend.test/api/", timeout=5, session=http)


class TestRequests:

    def test_edit_image_sends_multipart(self, client, http, mocker, sample_image):
        http.request.return_value = _response(mocker, payload={'images': [{'url': 'https://x/out.png'}]})

        data = client.edit_image(sample_image, "make it pop", negative_prompt="blur", model="pro")

        assert data == {'images': [{'url': 'https://x/out.png'}]}
        args, kwargs = http.request.call_args
        assert args == ('POST', 'http://backend.test/api/edit-image')
        assert kwargs['timeout'] == 5
        assert kwargs['data'] == {'prompt': 'make it pop', 'model': 'pro', 'negativePrompt': 'blur'}
        name, payload, mime = kwargs['files']['image']
        assert name == 'image.png' and mime == 'image/png'
        assert payload.startswith(b'\x89PNG')

    def test_generate_image_sends_json(self, client, http, mocker):
        http.request.return_value = _response(mocker, payload={'image': {'url': 'https://x/g.png'}})

        client.generate_image("a cat", width=512, height=512)

        args, kwargs = http.request.call_args
        assert args == ('POST', 'http://backend.test/api/generate-image')
        assert kwargs['json'] == {'prompt': 'a cat', 'model': 'nano', 'width': 512, 'height': 512}

    def test_inpaint_accepts_urls(self, client, http, mocker):
        http.request.return_value = _response(mocker, payload={})

        client.inpaint_image("https://x/img.png", np.zeros((4, 4, 4), dtype=np.uint8), "fill")

        kwargs = http.request.call_args[1]
        assert kwargs['data'] == {'prompt': 'fill', 'imageUrl': 'https://x/img.png'}
        assert list(kwargs['files']) == ['mask']

    def test_segment_and_health(self, client, http, mocker, sample_image):
        http.request.return_value = _response(mocker, payload={'status': 'ok', 'apiConfigured': True})

        assert client.check_health()['apiConfigured'] is True
        assert http.request.call_args[0] == ('GET', 'http://backend.test/api/health')

        client.segment_image(sample_image)
        assert http.request.call_args[0] == ('POST', 'http://backend.test/api/segment-image')


class TestErrors:

    def test_server_error_message(self, client, http, mocker):
        http.request.return_value = _response(mocker, ok=False, status=500,
                                              payload={'error': 'Model failed', 'details': 'x'})

        with pytest.raises(StudioApiError, match="Model failed") as exc:
            client.check_health()
        assert exc.value.status_code == 500
        assert exc.value.details == 'x'

    def test_error_without_json(self, client, http, mocker):
        http.request.return_value = _response(mocker, ok=False, status=502, json_error=True)

        with pytest.raises(StudioApiError, match="Failed to process request"):
            client.check_health()

    def test_error_without_message(self, client, http, mocker):
        http.request.return_value = _response(mocker, ok=False, status=503, payload={})

        with pytest.raises(StudioApiError, match="Server error: 503"):
            client.check_health()

    def test_timeout(self, client, http):
        http.request.side_effect = requests.Timeout("slow")

        with pytest.raises(StudioApiError, match="timed out") as exc:
            client.check_health()
        assert exc.value.status_code == 504

    def test_connection_error(self, client, http):
        http.request.side_effect = requests.ConnectionError("refused")

        with pytest.raises(StudioApiError, match="Unable to connect"):
            client.check_health()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
