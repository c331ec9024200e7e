import logging
from typing import Optional

from fastapi import Depends, FastAPI, File, Form, Request, UploadFile, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from fastapi.security import OAuth2PasswordBearer

from timecapsule.errors import CapsuleError, StorageError
from timecapsule.ingestion import BinaryPayload, TextPayload
from timecapsule.lifecycle import CapsuleLifecycle, CapsuleUpdate, CapsuleView
from timecapsule.media import LocalObjectStore
from timecapsule.schemas import (
    AnalyticsResponse,
    CapsuleCreate,
    CapsuleDetailResponse,
    CapsuleListResponse,
    CapsuleResponse,
    CapsuleUpdateRequest,
    ContentResponse,
    MessageResponse,
    SignedUrlResponse,
)
from timecapsule.services import Services, build_services, configure_logging

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/login", auto_error=False)


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_lifecycle(services: Services = Depends(get_services)) -> CapsuleLifecycle:
    return services.lifecycle


async def get_current_user(token: Optional[str] = Depends(oauth2_scheme),
                           services: Services = Depends(get_services)) -> str:
    return services.verifier.verify(token)


def detail_response(view: CapsuleView) -> CapsuleDetailResponse:
    response = CapsuleDetailResponse(
        **CapsuleResponse.model_validate(view.capsule).model_dump(),
        status=view.status.value,
        message=view.message,
        contents=[ContentResponse.model_validate(c) for c in view.contents],
    )
    if view.summary is not None:
        response.total_sentiment_score = view.summary.total
        response.average_sentiment_score = view.summary.average
        response.mood_summary = view.summary.mood
    return response


async def capsule_error_handler(request: Request, exc: CapsuleError):
    if isinstance(exc, StorageError):
        logger.error(f"{request.method} {request.url.path} failed: {exc.__cause__ or exc}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def request_validation_handler(request: Request, exc: RequestValidationError):
    # Only field names go back; submitted values are never echoed
    fields = []
    for error in exc.errors():
        name = str(error["loc"][-1]) if error.get("loc") else "request"
        if name not in fields:
            fields.append(name)
    message = f"Invalid or missing field: {', '.join(fields) or 'request'}"
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": message})


def create_app(services: Services = None) -> FastAPI:
    if services is None:
        from timecapsule.config import load_settings
        settings = load_settings()
        configure_logging(settings)
        services = build_services(settings)

    app = FastAPI(
        title="TimeCapsule API",
        description="API for creating time capsules that unlock in the future",
        version="1.0.0",
    )
    app.state.services = services
    app.add_middleware(
        CORSMiddleware,
        allow_origins=services.settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "HEAD", "PUT", "PATCH", "POST", "DELETE"],
        allow_headers=["*"],
    )
    app.add_exception_handler(CapsuleError, capsule_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)

    @app.get("/status")
    async def get_status():
        return {"status": "running"}

    @app.post("/capsules", response_model=CapsuleResponse, status_code=status.HTTP_201_CREATED)
    def create_capsule(capsule: CapsuleCreate, user_id: str = Depends(get_current_user),
                       lifecycle: CapsuleLifecycle = Depends(get_lifecycle)):
        """
        Create a new time capsule.
        - **title**: Name of the capsule.
        - **unlockDate**: Instant after which the contents become readable; must be in the future.
        """
        return lifecycle.create(
            user_id,
            capsule.title,
            capsule.unlock_at,
            description=capsule.description,
            is_communal=capsule.is_communal,
        )

    @app.get("/capsules/mine", response_model=CapsuleListResponse)
    def list_capsules(user_id: str = Depends(get_current_user),
                      lifecycle: CapsuleLifecycle = Depends(get_lifecycle)):
        """
        List the authenticated user's capsules, newest first.
        """
        return CapsuleListResponse(capsules=[CapsuleResponse.model_validate(c) for c in lifecycle.list_owned(user_id)])

    @app.get("/capsules/analytics", response_model=AnalyticsResponse)
    def get_analytics(user_id: str = Depends(get_current_user),
                      lifecycle: CapsuleLifecycle = Depends(get_lifecycle)):
        """
        Get analytics for user's capsules.
        - **total_capsules**: Total number of capsules.
        - **pending_capsules**: Capsules not yet open.
        - **opened_capsules**: Capsules already open.
        """
        counts = lifecycle.analytics(user_id)
        return AnalyticsResponse(
            total_capsules=counts["total"],
            pending_capsules=counts["pending"],
            opened_capsules=counts["opened"],
        )

    @app.get("/capsules/media/signed-url", response_model=SignedUrlResponse)
    def get_signed_url(key: str, user_id: str = Depends(get_current_user),
                       services: Services = Depends(get_services)):
        """
        Short-lived read URL for an unlocked capsule's media, for its creator only.
        """
        content = services.lifecycle.authorize_media(user_id, key)
        return SignedUrlResponse(url=services.object_store.signed_url(content.storage_key))

    @app.get("/capsules/{id}", response_model=CapsuleDetailResponse)
    def get_capsule(id: int, user_id: str = Depends(get_current_user),
                    lifecycle: CapsuleLifecycle = Depends(get_lifecycle)):
        """
        Get a capsule. While locked only its metadata is returned;
        once unlocked the contents and their mood summary come along.
        """
        return detail_response(lifecycle.view(user_id, id))

    @app.patch("/capsules/{id}", response_model=CapsuleResponse)
    def update_capsule(id: int, fields: CapsuleUpdateRequest, user_id: str = Depends(get_current_user),
                       lifecycle: CapsuleLifecycle = Depends(get_lifecycle)):
        """
        Update title, description or isCommunal of a locked capsule.
        """
        update = CapsuleUpdate.from_mapping(fields.model_dump(exclude_unset=True))
        return lifecycle.update(user_id, id, update)

    @app.delete("/capsules/{id}", response_model=MessageResponse)
    def delete_capsule(id: int, user_id: str = Depends(get_current_user),
                       lifecycle: CapsuleLifecycle = Depends(get_lifecycle)):
        """
        Delete a capsule together with all of its contents.
        """
        lifecycle.delete(user_id, id)
        return MessageResponse(message="Time capsule deleted successfully.")

    @app.post("/capsules/{id}/content", response_model=ContentResponse, status_code=status.HTTP_201_CREATED)
    def add_content(id: int,
                    contentText: Optional[str] = Form(None),
                    file: Optional[UploadFile] = File(None),
                    user_id: str = Depends(get_current_user),
                    services: Services = Depends(get_services)):
        """
        Add text (`contentText`) or a file (`file`) to a locked capsule.
        """
        if file is not None:
            payload = BinaryPayload(
                # one byte past the limit is enough to reject the upload
                data=file.file.read(services.settings.max_upload_bytes + 1),
                mime_type=file.content_type or "application/octet-stream",
                original_name=file.filename,
            )
        else:
            payload = TextPayload(text=contentText)
        return services.ingestion.add_content(user_id, id, payload)

    if isinstance(services.object_store, LocalObjectStore):
        # GCS serves its own signed URLs
        @app.get("/media/{key}")
        def serve_media(key: str, token: str, services: Services = Depends(get_services)):
            data, mime_type = services.object_store.read_signed(key, token)
            return Response(content=data, media_type=mime_type)

    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("timecapsule.main:create_app", factory=True, host="0.0.0.0", port=8000)
