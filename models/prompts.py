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

import textwrap


def make_article_prompt(topic: str, desired_words: int) -> str:
    return textwrap.dedent(
        f"""\
        You are an expert writer. Write a detailed, well-structured article on the following topic: "{topic}".

        The article should be approximately {desired_words} words long (it's okay to be slightly above or below), written in natural paragraphs, and it must fully finish its explanation with a clear concluding paragraph. Do not stop mid-sentence."""
    )


def make_resume_review_prompt(resume_text: str) -> str:
    header = textwrap.dedent(
        """\
        You are an expert technical recruiter.

        Review the following resume and return your feedback in this structure:

        1. Overall Impression (2-3 sentences)
        2. Strengths (bullet points)
        3. Weaknesses (bullet points)
        4. Suggestions for Improvement (bullet points)
        5. Final Verdict (1 paragraph)

        Be concise but specific.

        Resume:
        """
    )
    return header + resume_text
