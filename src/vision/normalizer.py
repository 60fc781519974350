"""Inbound request normalization."""
import base64
import binascii
import json
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple, Type, TypeVar

from fastapi import Request
from pydantic import ValidationError
from starlette.datastructures import FormData, UploadFile
from starlette.exceptions import HTTPException
from starlette.formparsers import MultiPartException

from core.logger import LoggerService
from core.settings import Settings
from providers.models import ImageDetail
from .errors import ImageTooLarge, MalformedInput, UnsupportedMediaType
from .models import CanonicalRequest, ProviderName, ThinkingMode

ALLOWED_UPLOAD_TYPES: Tuple[str, ...] = (
    "image/jpeg",
    "image/png",
    "image/webp",
    "image/gif",
)
DEFAULT_INLINE_MEDIA_TYPE = "image/jpeg"
STREAM_PATH_SUFFIX = "/stream"

TRUE_FLAGS = frozenset({"1", "true", "yes"})
FALSE_FLAGS = frozenset({"0", "false", "no"})

E = TypeVar("E", bound=Enum)


def parse_query_flag(value: Optional[str]) -> Optional[bool]:
    """Parse a boolean query parameter, None when absent or unrecognized."""
    if value is None:
        return None
    value = value.strip().lower()
    if value in TRUE_FLAGS:
        return True
    if value in FALSE_FLAGS:
        return False
    return None


def resolve_stream_intent(
    path_requests_stream: bool,
    body_flag: Optional[bool],
    query_value: Optional[str],
) -> bool:
    """Path suffix wins, then the explicit body field, then the query flag."""
    if path_requests_stream:
        return True
    if body_flag is not None:
        return body_flag
    return bool(parse_query_flag(query_value))


def to_data_uri(payload: str, media_type: str = DEFAULT_INLINE_MEDIA_TYPE) -> str:
    """Wrap bare base64 into a data URI."""
    return f"data:{media_type};base64,{payload}"


class InputNormalizer:
    """Turns JSON or multipart bodies into a CanonicalRequest.

    Nothing is kept between calls: every call either returns one complete
    canonical request or raises, leaving no partial state behind.
    """

    def __init__(self, logger: LoggerService, settings: Settings) -> None:
        """Initialize normalizer.

        Args:
            logger: Logger service instance
            settings: Application settings
        """
        self.logger = logger.get_logger(__name__)
        self.max_image_bytes = settings.MAX_IMAGE_BYTES

    async def normalize(self, request: Request) -> CanonicalRequest:
        """Normalize an inbound HTTP request.

        Args:
            request: FastAPI request

        Returns:
            Canonical request

        Raises:
            MalformedInput: If the body cannot be parsed or has invalid fields
            UnsupportedMediaType: If an uploaded file is not a raster image
        """
        path_stream = request.url.path.rstrip("/").endswith(STREAM_PATH_SUFFIX)
        query = request.query_params
        content_type = request.headers.get("content-type", "").lower()

        if "multipart/form-data" in content_type:
            try:
                form = await request.form()
            except (MultiPartException, HTTPException) as e:
                raise MalformedInput(f"Invalid multipart body: {e}") from e
            try:
                canonical = await self.from_form(
                    form, path_stream=path_stream, query=query
                )
            finally:
                await form.close()
            encoding = "form"
        else:
            canonical = self.from_json(
                await request.body(), path_stream=path_stream, query=query
            )
            encoding = "json"

        self.logger.info(
            "Normalized vision request",
            extra={
                "request_id": getattr(request.state, "request_id", None),
                "encoding": encoding,
                "provider": canonical.provider.value if canonical.provider else None,
                "images_count": len(canonical.images),
                "has_prompt": bool(canonical.prompt_text),
                "wants_stream": canonical.wants_stream,
            },
        )
        return canonical

    def from_json(
        self,
        body: bytes,
        path_stream: bool = False,
        query: Optional[Mapping[str, str]] = None,
    ) -> CanonicalRequest:
        """Normalize a structured-document body.

        Images are collected in a fixed order: the `images` list, then
        `image_url`, then `image_base64`.
        """
        query = query or {}
        try:
            data = json.loads(body or b"{}")
        except (ValueError, UnicodeDecodeError) as e:
            raise MalformedInput(f"Request body is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise MalformedInput("Request body must be a JSON object")

        images: List[str] = []
        raw_images = data.get("images")
        if raw_images is not None:
            if not isinstance(raw_images, list):
                raise MalformedInput("'images' must be a list of strings", "images")
            for ref in raw_images:
                if not isinstance(ref, str):
                    raise MalformedInput("'images' must be a list of strings", "images")
                self._append_reference(images, ref, "images")

        image_url = self._text_field(data, "image_url")
        if image_url:
            self._append_reference(images, image_url, "image_url")

        image_base64 = self._text_field(data, "image_base64")
        if image_base64:
            images.append(self._inline_image(image_base64, "image_base64"))

        stream_flag = data.get("stream")
        if stream_flag is not None and not isinstance(stream_flag, bool):
            raise MalformedInput("'stream' must be a boolean", "stream")

        return self._build(
            provider=self._text_field(data, "provider") or query.get("provider"),
            model=self._text_field(data, "model"),
            prompt=self._text_field(data, "prompt"),
            images=images,
            detail=self._text_field(data, "detail"),
            thinking=self._text_field(data, "thinking"),
            wants_stream=resolve_stream_intent(
                path_stream, stream_flag, query.get("stream")
            ),
        )

    async def from_form(
        self,
        form: FormData,
        path_stream: bool = False,
        query: Optional[Mapping[str, str]] = None,
    ) -> CanonicalRequest:
        """Normalize a multipart form body.

        Images are collected from `images`, `image_url`, `image_base64`, and
        finally the uploaded `file`.
        """
        query = query or {}
        images: List[str] = []
        for ref in form.getlist("images"):
            if not isinstance(ref, str):
                raise MalformedInput("'images' must be text fields", "images")
            self._append_reference(images, ref, "images")

        image_url = self._form_text(form, "image_url")
        if image_url:
            self._append_reference(images, image_url, "image_url")

        image_base64 = self._form_text(form, "image_base64")
        if image_base64:
            images.append(self._inline_image(image_base64, "image_base64"))

        upload = form.get("file")
        if isinstance(upload, UploadFile):
            data_uri = await self._upload_to_data_uri(upload)
            if data_uri:
                images.append(data_uri)
        elif upload:
            raise MalformedInput("'file' must be an uploaded file", "file")

        raw_stream = self._form_text(form, "stream")
        stream_flag = None if not raw_stream else raw_stream != "false"

        return self._build(
            provider=self._form_text(form, "provider") or query.get("provider"),
            model=self._form_text(form, "model"),
            prompt=self._form_text(form, "prompt"),
            images=images,
            detail=self._form_text(form, "detail") or ImageDetail.AUTO.value,
            thinking=self._form_text(form, "thinking"),
            wants_stream=resolve_stream_intent(
                path_stream, stream_flag, query.get("stream")
            ),
        )

    def _build(
        self,
        provider: Optional[str],
        model: Optional[str],
        prompt: Optional[str],
        images: List[str],
        detail: Optional[str],
        thinking: Optional[str],
        wants_stream: bool,
    ) -> CanonicalRequest:
        try:
            return CanonicalRequest(
                provider=self._enum_value(ProviderName, provider, "provider"),
                model=model or None,
                prompt_text=prompt or "",
                images=tuple(images),
                detail_level=self._enum_value(ImageDetail, detail, "detail"),
                extended_thinking=self._enum_value(ThinkingMode, thinking, "thinking"),
                wants_stream=wants_stream,
            )
        except ValidationError as e:
            raise MalformedInput(f"Invalid vision request: {e}") from e

    @staticmethod
    def _enum_value(enum_cls: Type[E], value: Optional[str], field: str) -> Optional[E]:
        if not value:
            return None
        try:
            return enum_cls(value.strip().lower())
        except ValueError:
            allowed = ", ".join(member.value for member in enum_cls)
            raise MalformedInput(
                f"Invalid '{field}': {value!r} (expected one of: {allowed})", field
            ) from None

    @staticmethod
    def _text_field(data: Dict[str, Any], field: str) -> Optional[str]:
        value = data.get(field)
        if value is None:
            return None
        if not isinstance(value, str):
            raise MalformedInput(f"'{field}' must be a string", field)
        return value.strip() if field != "prompt" else value

    @staticmethod
    def _form_text(form: FormData, field: str) -> Optional[str]:
        value = form.get(field)
        if value is None:
            return None
        if not isinstance(value, str):
            raise MalformedInput(f"'{field}' must be a text field", field)
        return value.strip() if field != "prompt" else value

    def _append_reference(self, images: List[str], ref: str, field: str) -> None:
        # Empty references are dropped, never forwarded
        ref = ref.strip()
        if not ref:
            return
        if ref.startswith("data:"):
            self._check_size(self._estimated_size(ref.partition(",")[2]), field)
        images.append(ref)

    def _inline_image(self, value: str, field: str) -> str:
        """Validate inline base64 and return it as a data URI."""
        media_type = DEFAULT_INLINE_MEDIA_TYPE
        payload = value
        if value.startswith("data:"):
            header, _, payload = value.partition(",")
            if not header.endswith(";base64"):
                raise MalformedInput(f"'{field}' must be base64 encoded", field)
            media_type = header[len("data:"):-len(";base64")] or media_type

        payload = "".join(payload.split())
        try:
            decoded = base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as e:
            raise MalformedInput(f"'{field}' is not valid base64", field) from e
        self._check_size(len(decoded), field)
        return to_data_uri(payload, media_type)

    async def _upload_to_data_uri(self, upload: UploadFile) -> Optional[str]:
        content = await upload.read()
        if not content and not upload.filename:
            return None

        media_type = (upload.content_type or "").split(";")[0].strip().lower()
        if media_type not in ALLOWED_UPLOAD_TYPES:
            self.logger.warning(
                "Rejected upload with unsupported media type",
                extra={"media_type": media_type, "upload_filename": upload.filename},
            )
            raise UnsupportedMediaType(media_type, ALLOWED_UPLOAD_TYPES)

        self._check_size(len(content), "file")
        return to_data_uri(base64.b64encode(content).decode("ascii"), media_type)

    @staticmethod
    def _estimated_size(payload: str) -> int:
        payload = payload.strip()
        return len(payload) * 3 // 4 - payload[-2:].count("=")

    def _check_size(self, size: int, field: str) -> None:
        if size > self.max_image_bytes:
            raise ImageTooLarge(field, size, self.max_image_bytes)
