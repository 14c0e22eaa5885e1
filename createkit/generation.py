"""
Content generation operations.

Each operation validates its input, passes the quota gate, calls the provider,
persists exactly one creation row and only then commits the quota usage.
"""

from __future__ import annotations

import logging
import mimetypes
from contextlib import contextmanager
from typing import Iterator, Optional, Protocol
from uuid import uuid4

from createkit.db import CreationKind, CreationRecord, DbClient
from createkit.errors import CreateKitError, ProviderError, StorageError
from createkit.identity import Caller
from createkit.jobs import ImageJobClient, poll_job, submit_image_job
from createkit.quota import BillingClass, QuotaGate
from createkit.storage import ImageEffects, StorageClient
from models import prompts
from models.gemini import GeminiInvalidResponseException

logger = logging.getLogger(__name__)

DEFAULT_ARTICLE_WORDS = 400
MIN_ARTICLE_TOKENS = 2048
MAX_ARTICLE_TOKENS = 8192
TOKENS_PER_WORD = 3
BLOG_TITLE_MAX_TOKENS = 100
RESUME_REVIEW_MAX_TOKENS = 1600

REMOVE_BACKGROUND_PROMPT = "Remove background from image"
RESUME_REVIEW_PROMPT = "Review the uploaded resume"


class TextGenerator(Protocol):
    def generate(
        self,
        prompt: str,
        *,
        model: str,
        max_output_tokens: int,
        temperature: float,
    ) -> str:
        ...


@contextmanager
def failure_message(message: str) -> Iterator[None]:
    """
    Surface unexpected failures of an operation as ``message``.

    Errors from the taxonomy keep their own message, except storage errors,
    which are reported as the operation's generic failure.
    """
    try:
        yield
    except StorageError as exc:
        logger.error("%s (%s)", message, exc.message)
        raise StorageError(message) from exc
    except CreateKitError:
        raise
    except Exception as exc:
        logger.exception(message)
        raise ProviderError(message) from exc


def article_token_budget(length: Optional[int]) -> int:
    words = length if length and length > 0 else DEFAULT_ARTICLE_WORDS
    return max(MIN_ARTICLE_TOKENS, min(MAX_ARTICLE_TOKENS, round(words * TOKENS_PER_WORD)))


def persist_creation(
    db: DbClient,
    owner_id: str,
    prompt: str,
    content: str,
    kind: CreationKind,
    publish: bool = False,
) -> CreationRecord:
    record = db.create_creation(owner_id, prompt, content, kind, publish=publish)
    logger.info("Stored %s creation %s for user %s", kind.value, record.id, owner_id)
    return record


def _generate_text(
    generator: TextGenerator,
    prompt: str,
    *,
    model: str,
    max_output_tokens: int,
    empty_message: str,
    temperature: float = 0.7,
) -> str:
    try:
        text = generator.generate(
            prompt,
            model=model,
            max_output_tokens=max_output_tokens,
            temperature=temperature,
        )
    except GeminiInvalidResponseException:
        text = ""
    if not text or not text.strip():
        raise ProviderError(empty_message)
    return text


def _storage_path(owner_id: str, content_type: str) -> str:
    extension = mimetypes.guess_extension(content_type) or ".png"
    return f"creations/{owner_id}/{uuid4().hex}{extension}"


def generate_article(
    *,
    caller: Caller,
    prompt: str,
    length: Optional[int],
    gate: QuotaGate,
    text_generator: TextGenerator,
    db: DbClient,
    model: str,
) -> str:
    quota = gate.check(caller, BillingClass.FREE_ELIGIBLE)
    desired_words = length if length and length > 0 else DEFAULT_ARTICLE_WORDS
    article = _generate_text(
        text_generator,
        prompts.make_article_prompt(prompt, desired_words),
        model=model,
        max_output_tokens=article_token_budget(length),
        empty_message="Failed to generate article content.",
    )
    persist_creation(db, caller.user_id, prompt, article, CreationKind.ARTICLE)
    gate.commit(quota)
    return article


def generate_blog_title(
    *,
    caller: Caller,
    prompt: str,
    gate: QuotaGate,
    text_generator: TextGenerator,
    db: DbClient,
    model: str,
) -> str:
    quota = gate.check(caller, BillingClass.FREE_ELIGIBLE)
    title = _generate_text(
        text_generator,
        prompt,
        model=model,
        max_output_tokens=BLOG_TITLE_MAX_TOKENS,
        empty_message="Failed to generate blog title.",
    )
    persist_creation(db, caller.user_id, prompt, title, CreationKind.BLOG_TITLE)
    gate.commit(quota)
    return title


def generate_image(
    *,
    caller: Caller,
    prompt: str,
    publish: bool,
    gate: QuotaGate,
    image_client: ImageJobClient,
    storage: StorageClient,
    db: DbClient,
    poll_interval: float,
    max_attempts: int,
) -> str:
    quota = gate.check(caller, BillingClass.PREMIUM_ONLY, feature="Image generation")
    job = submit_image_job(image_client, prompt)
    result_url = poll_job(
        image_client, job, interval=poll_interval, max_attempts=max_attempts
    )
    image_url = storage.upload_from_url(_storage_path(caller.user_id, "image/png"), result_url)
    if not image_url:
        raise ProviderError("Image upload failed.")
    persist_creation(db, caller.user_id, prompt, image_url, CreationKind.IMAGE, publish)
    gate.commit(quota)
    return image_url


def remove_image_background(
    *,
    caller: Caller,
    image: bytes,
    content_type: str,
    gate: QuotaGate,
    storage: StorageClient,
    effects: ImageEffects,
    db: DbClient,
) -> str:
    quota = gate.check(
        caller, BillingClass.PREMIUM_ONLY, feature="Image background removal"
    )
    source_url = storage.upload_bytes(
        _storage_path(caller.user_id, content_type), image, content_type
    )
    image_url = effects.remove_background(source_url)
    persist_creation(
        db, caller.user_id, REMOVE_BACKGROUND_PROMPT, image_url, CreationKind.IMAGE
    )
    gate.commit(quota)
    return image_url


def remove_image_object(
    *,
    caller: Caller,
    image: bytes,
    content_type: str,
    object_name: str,
    gate: QuotaGate,
    storage: StorageClient,
    effects: ImageEffects,
    db: DbClient,
) -> str:
    quota = gate.check(caller, BillingClass.PREMIUM_ONLY, feature="Image object removal")
    source_url = storage.upload_bytes(
        _storage_path(caller.user_id, content_type), image, content_type
    )
    image_url = effects.remove_object(source_url, object_name)
    persist_creation(
        db,
        caller.user_id,
        f"Remove {object_name} from image",
        image_url,
        CreationKind.IMAGE,
    )
    gate.commit(quota)
    return image_url


def review_resume(
    *,
    caller: Caller,
    resume_text: str,
    gate: QuotaGate,
    text_generator: TextGenerator,
    db: DbClient,
    model: str,
) -> str:
    quota = gate.check(caller, BillingClass.PREMIUM_ONLY, feature="Resume review")
    review = _generate_text(
        text_generator,
        prompts.make_resume_review_prompt(resume_text),
        model=model,
        max_output_tokens=RESUME_REVIEW_MAX_TOKENS,
        empty_message="Failed to review resume.",
    )
    persist_creation(
        db, caller.user_id, RESUME_REVIEW_PROMPT, review, CreationKind.RESUME_REVIEW
    )
    gate.commit(quota)
    return review
