# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================

import logging
import requests

logger = logging.getLogger(__name__)

GENERATE_PATH = "/generate/image/bfl/flux-1-dev"
JOBS_PATH = "/jobs/"
REQUEST_TIMEOUT = 30


class KreaClient:
    """
    HTTP client for Krea's asynchronous image generation API.

    `submit` starts a job and returns the raw response body; `get_job` returns
    the job status body. A throttled status check (HTTP 429) is reported as an
    empty body, which callers treat as still pending.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.krea.ai",
        timeout: float = REQUEST_TIMEOUT,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = requests.Session()
        self._session.headers.update({"Authorization": f"Bearer {api_key}"})

    def submit(self, prompt: str, *, width: int, height: int) -> dict:
        response = self._session.post(
            f"{self.base_url}{GENERATE_PATH}",
            json={"prompt": prompt, "width": width, "height": height},
            timeout=self.timeout,
        )
        response.raise_for_status()
        return response.json()

    def get_job(self, job_id: str) -> dict:
        response = self._session.get(
            f"{self.base_url}{JOBS_PATH}{job_id}", timeout=self.timeout
        )
        if response.status_code == 429:
            logger.warning("Krea throttled status check for job %s", job_id)
            return {}
        response.raise_for_status()
        return response.json()

    def close(self) -> None:
        self._session.close()
