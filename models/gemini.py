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

import time
import logging
from google import genai
from google.genai import types

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-3-flash-preview"
DEFAULT_TEMPERATURE = 0.7


class GeminiInvalidResponseException(Exception):
    pass


def call_predict(
    query: str,
    api_key: str,
    model: str = DEFAULT_MODEL,
    max_output_tokens: int = 2048,
    temperature: float = DEFAULT_TEMPERATURE,
) -> str:
    """Calls Gemini with a single text prompt and returns the response text."""
    client = genai.Client(api_key=api_key)

    start_time = time.time()
    truncated_query = (query[:200] + "...") if len(query) > 200 else query
    logger.info("Calling Gemini (%s), prompt: '%s'", model, truncated_query)
    response = client.models.generate_content(
        model=model,
        contents=query,
        config=types.GenerateContentConfig(
            temperature=temperature, max_output_tokens=max_output_tokens
        ),
    )
    logger.info("Gemini call took: %.2fs", time.time() - start_time)
    if not response.text:
        raise GeminiInvalidResponseException()
    return response.text


class GeminiTextGenerator:
    """Text generator backed by the Gemini API."""

    def __init__(self, api_key: str):
        self.api_key = api_key

    def generate(
        self,
        prompt: str,
        *,
        model: str = DEFAULT_MODEL,
        max_output_tokens: int = 2048,
        temperature: float = DEFAULT_TEMPERATURE,
    ) -> str:
        return call_predict(
            prompt,
            api_key=self.api_key,
            model=model,
            max_output_tokens=max_output_tokens,
            temperature=temperature,
        )
