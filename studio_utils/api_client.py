"""
HTTP client for the image edit/generate/segment backend.

The backend proxies a hosted model service; this client only shapes requests
and turns failures into ``StudioApiError``. Responses are returned as parsed
JSON so callers can normalise them with ``studio_core.responses``.
"""

import requests
from typing import Optional, Dict, Any
from studio_config.constants import ApiConfig
from studio_core.errors import StudioApiError
from studio_utils.encoding import raster_to_png_bytes
from studio_utils.logger import get_logger

logger = get_logger('api')


class StudioApiClient:
    def __init__(self, base_url=ApiConfig.BASE_URL, timeout=ApiConfig.TIMEOUT_SECONDS, session=None):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()

    def _url(self, path):
        return f"{self.base_url}/{path.lstrip('/')}"

    def _handle_response(self, response) -> Dict[str, Any]:
        if not response.ok:
            try:
                error_data = response.json()
            except ValueError:
                error_data = {'error': 'Failed to process request'}
            message = error_data.get('error') or f"Server error: {response.status_code}"
            raise StudioApiError(message, status_code=response.status_code, details=error_data.get('details'))
        try:
            return response.json()
        except ValueError as e:
            raise StudioApiError(f"Invalid JSON response: {e}", status_code=response.status_code)

    def _request(self, method, path, **kwargs):
        url = self._url(path)
        logger.info(f"{method} {url}")
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.Timeout as e:
            raise StudioApiError(f"Request timed out after {self.timeout}s", status_code=504) from e
        except requests.RequestException as e:
            raise StudioApiError(f"Unable to connect to backend server: {e}") from e
        return self._handle_response(response)

    @staticmethod
    def _image_file(raster, name='image.png'):
        return (name, raster_to_png_bytes(raster), 'image/png')

    def edit_image(self, raster, prompt, negative_prompt=None, model=ApiConfig.DEFAULT_MODEL):
        """Edit ``raster`` according to ``prompt``."""
        data = {'prompt': prompt, 'model': model or ApiConfig.DEFAULT_MODEL}
        if negative_prompt:
            data['negativePrompt'] = negative_prompt
        return self._request('POST', '/edit-image', data=data, files={'image': self._image_file(raster)})

    def inpaint_image(self, image, mask, prompt):
        """
        Inpaint the masked region of an image.

        ``image`` and ``mask`` may each be a raster or an already hosted URL.
        """
        data = {'prompt': prompt}
        files = {}
        if isinstance(image, str):
            data['imageUrl'] = image
        else:
            files['image'] = self._image_file(image)
        if isinstance(mask, str):
            data['maskUrl'] = mask
        else:
            files['mask'] = self._image_file(mask, 'mask.png')
        return self._request('POST', '/inpaint-image', data=data, files=files or None)

    def generate_image(self, prompt, negative_prompt=None, width: Optional[int] = None,
                       height: Optional[int] = None, model=ApiConfig.DEFAULT_MODEL):
        payload = {
            'prompt': prompt,
            'model': model or ApiConfig.DEFAULT_MODEL,
        }
        if negative_prompt:
            payload['negativePrompt'] = negative_prompt
        if width:
            payload['width'] = width
        if height:
            payload['height'] = height
        return self._request('POST', '/generate-image', json=payload)

    def segment_image(self, raster):
        return self._request('POST', '/segment-image', files={'image': self._image_file(raster)})

    def check_health(self):
        return self._request('GET', '/health')
