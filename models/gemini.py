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

DEFAULT_MODEL = "gemini-2.5-flash"
QUERY_RESPONSE_MAX_OUTPUT_TOKENS = 4000


class GeminiInvalidResponseException(Exception):
    pass


def call_predict_json(
    query: str,
    system_instruction: str,
    api_key: str,
    temperature: float = 0.2,
    model: str = DEFAULT_MODEL,
) -> str:
    """
    Calls Gemini in JSON mode and returns the raw response text.

    Args:
        query (str): The user content, usually a JSON-encoded recipe.
        system_instruction (str): Instructions describing the expected JSON.
        api_key (str): The Gemini API key.
        temperature (float): Sampling temperature.
        model (str): The model to call with.

    Returns:
        str: The JSON text produced by the model.

    Raises:
        GeminiInvalidResponseException: If the model returned no text.
    """
    client = genai.Client(api_key=api_key)
    start_time = time.time()
    truncated_query = (query[:200] + "...") if len(query) > 200 else query
    logger.info("Calling Gemini in JSON mode, prompt: '%s'", truncated_query)

    response = client.models.generate_content(
        model=model,
        contents=query,
        config=types.GenerateContentConfig(
            system_instruction=system_instruction,
            temperature=temperature,
            max_output_tokens=QUERY_RESPONSE_MAX_OUTPUT_TOKENS,
            response_mime_type="application/json",
        ),
    )
    logger.info("Gemini JSON call took: %.2fs", time.time() - start_time)
    if not response.text:
        raise GeminiInvalidResponseException()
    return response.text
