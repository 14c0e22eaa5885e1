"""
HTTP routes for the CreateKit API.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import PlainTextResponse

from createkit import creations as creation_ops
from createkit import generation
from createkit.config import Settings, get_settings
from createkit.db import DbClient
from createkit.dependencies import (
    get_current_caller,
    get_db_client,
    get_image_effects,
    get_image_job_client,
    get_quota_gate,
    get_storage_client,
    get_text_generator,
)
from createkit.errors import BadRequest
from createkit.generation import TextGenerator, failure_message
from createkit.identity import Caller
from createkit.jobs import ImageJobClient
from createkit.quota import QuotaGate
from createkit.schemas import (
    Creation,
    CreationsResponse,
    GenerateArticleRequest,
    GenerateArticleResponse,
    GenerateBlogTitleRequest,
    GenerateBlogTitleResponse,
    GenerateImageRequest,
    ImageResponse,
    ResumeReviewResponse,
    ToggleLikeResponse,
    TogglePublishRequest,
    TogglePublishResponse,
)
from createkit.storage import ImageEffects, StorageClient
from createkit.uploads import extract_pdf_text, image_content_type, read_upload

logger = logging.getLogger(__name__)

router = APIRouter()
user_router = APIRouter(prefix="/user", dependencies=[Depends(get_current_caller)])
ai_router = APIRouter(prefix="/ai", dependencies=[Depends(get_current_caller)])


@router.get("/health", response_class=PlainTextResponse)
def health():
    return "CreateKit Server is running"


@user_router.get("/get-user-creations", response_model=CreationsResponse)
def get_user_creations(
    caller: Caller = Depends(get_current_caller),
    db: DbClient = Depends(get_db_client),
):
    records = creation_ops.list_user_creations(db, caller)
    return CreationsResponse(creations=[Creation(**r.as_dict()) for r in records])


@user_router.get("/get-published-creations", response_model=CreationsResponse)
def get_published_creations(db: DbClient = Depends(get_db_client)):
    records = db.list_published_creations()
    return CreationsResponse(creations=[Creation(**r.as_dict()) for r in records])


@user_router.post("/toggle-like-creation/{creation_id}", response_model=ToggleLikeResponse)
def toggle_like_creation(
    creation_id: int,
    caller: Caller = Depends(get_current_caller),
    db: DbClient = Depends(get_db_client),
):
    liked = creation_ops.toggle_like(db, caller, creation_id)
    return ToggleLikeResponse(
        message="Creation liked." if liked else "Creation unliked."
    )


@user_router.post("/toggle-publish-creation", response_model=TogglePublishResponse)
def toggle_publish_creation(
    payload: TogglePublishRequest,
    caller: Caller = Depends(get_current_caller),
    db: DbClient = Depends(get_db_client),
):
    if payload.creationId is None:
        raise BadRequest("creationId is required", envelope_key="message")
    publish = creation_ops.toggle_publish(
        db, caller, payload.creationId, payload.publish
    )
    return TogglePublishResponse(creationId=payload.creationId, publish=publish)


@ai_router.post("/generate-article", response_model=GenerateArticleResponse)
def generate_article(
    payload: GenerateArticleRequest,
    caller: Caller = Depends(get_current_caller),
    gate: QuotaGate = Depends(get_quota_gate),
    text_generator: TextGenerator = Depends(get_text_generator),
    db: DbClient = Depends(get_db_client),
    settings: Settings = Depends(get_settings),
):
    with failure_message("Article generation failed."):
        article = generation.generate_article(
            caller=caller,
            prompt=payload.prompt,
            length=payload.length,
            gate=gate,
            text_generator=text_generator,
            db=db,
            model=settings.article_model,
        )
    return GenerateArticleResponse(article=article)


@ai_router.post("/generate-blog-title", response_model=GenerateBlogTitleResponse)
def generate_blog_title(
    payload: GenerateBlogTitleRequest,
    caller: Caller = Depends(get_current_caller),
    gate: QuotaGate = Depends(get_quota_gate),
    text_generator: TextGenerator = Depends(get_text_generator),
    db: DbClient = Depends(get_db_client),
    settings: Settings = Depends(get_settings),
):
    with failure_message("Blog title generation failed."):
        title = generation.generate_blog_title(
            caller=caller,
            prompt=payload.prompt,
            gate=gate,
            text_generator=text_generator,
            db=db,
            model=settings.blog_title_model,
        )
    return GenerateBlogTitleResponse(blogTitle=title)


@ai_router.post("/generate-image", response_model=ImageResponse)
def generate_image(
    payload: GenerateImageRequest,
    caller: Caller = Depends(get_current_caller),
    gate: QuotaGate = Depends(get_quota_gate),
    image_client: ImageJobClient = Depends(get_image_job_client),
    storage: StorageClient = Depends(get_storage_client),
    db: DbClient = Depends(get_db_client),
    settings: Settings = Depends(get_settings),
):
    """
    Blocks for up to ``image_poll_max_attempts`` status checks while the
    provider renders the image.
    """
    with failure_message("Image generation failed."):
        image_url = generation.generate_image(
            caller=caller,
            prompt=payload.prompt,
            publish=payload.publish,
            gate=gate,
            image_client=image_client,
            storage=storage,
            db=db,
            poll_interval=settings.image_poll_interval_seconds,
            max_attempts=settings.image_poll_max_attempts,
        )
    return ImageResponse(imageUrl=image_url)


@ai_router.post("/remove-image-background", response_model=ImageResponse)
def remove_image_background(
    image: Optional[UploadFile] = File(None),
    caller: Caller = Depends(get_current_caller),
    gate: QuotaGate = Depends(get_quota_gate),
    storage: StorageClient = Depends(get_storage_client),
    effects: ImageEffects = Depends(get_image_effects),
    db: DbClient = Depends(get_db_client),
    settings: Settings = Depends(get_settings),
):
    data = read_upload(
        image,
        max_bytes=settings.max_upload_bytes,
        missing_message="No image uploaded",
        label="Image",
    )
    content_type = image_content_type(data)
    with failure_message("Image background removal failed."):
        image_url = generation.remove_image_background(
            caller=caller,
            image=data,
            content_type=content_type,
            gate=gate,
            storage=storage,
            effects=effects,
            db=db,
        )
    return ImageResponse(imageUrl=image_url)


@ai_router.post("/remove-image-object", response_model=ImageResponse)
def remove_image_object(
    image: Optional[UploadFile] = File(None),
    object_name: Optional[str] = Form(None, alias="object"),
    caller: Caller = Depends(get_current_caller),
    gate: QuotaGate = Depends(get_quota_gate),
    storage: StorageClient = Depends(get_storage_client),
    effects: ImageEffects = Depends(get_image_effects),
    db: DbClient = Depends(get_db_client),
    settings: Settings = Depends(get_settings),
):
    data = read_upload(
        image,
        max_bytes=settings.max_upload_bytes,
        missing_message="No image uploaded",
        label="Image",
    )
    object_name = (object_name or "").strip()
    if not object_name:
        raise BadRequest("No object specified for removal")
    content_type = image_content_type(data)
    with failure_message("Image object removal failed."):
        image_url = generation.remove_image_object(
            caller=caller,
            image=data,
            content_type=content_type,
            object_name=object_name,
            gate=gate,
            storage=storage,
            effects=effects,
            db=db,
        )
    return ImageResponse(imageUrl=image_url)


@ai_router.post("/resume-review", response_model=ResumeReviewResponse)
def resume_review(
    resume: Optional[UploadFile] = File(None),
    caller: Caller = Depends(get_current_caller),
    gate: QuotaGate = Depends(get_quota_gate),
    text_generator: TextGenerator = Depends(get_text_generator),
    db: DbClient = Depends(get_db_client),
    settings: Settings = Depends(get_settings),
):
    data = read_upload(
        resume,
        max_bytes=settings.max_upload_bytes,
        missing_message="No resume uploaded",
        label="Resume",
    )
    resume_text = extract_pdf_text(data)
    if not resume_text.strip():
        raise BadRequest("Uploaded resume is empty or could not extract text.")
    with failure_message("Resume review failed."):
        review = generation.review_resume(
            caller=caller,
            resume_text=resume_text,
            gate=gate,
            text_generator=text_generator,
            db=db,
            model=settings.resume_model,
        )
    return ResumeReviewResponse(content=review)


router.include_router(user_router)
router.include_router(ai_router)
