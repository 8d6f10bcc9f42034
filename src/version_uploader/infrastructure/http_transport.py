from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

import httpx
from pydantic import AliasChoices, BaseModel, Field

from version_uploader.domain.errors import (
    ChunkUploadError,
    SessionCompleteError,
    SessionCreateError,
)
from version_uploader.domain.upload import CommittedArtifact, UploadMetadata

logger = logging.getLogger(__name__)

DEFAULT_PATH_PREFIX = "/api/v2/version/upload-chunked"
DEFAULT_TIMEOUT_SECONDS = 300.0


class StartUploadResponse(BaseModel):
    upload_id: str = Field(min_length=1)


class CompleteUploadResponse(BaseModel):
    version: str
    platform: str
    final_size: int = Field(validation_alias=AliasChoices("final_size", "file_size"))
    content_hash: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("content_hash", "hash")
    )
    download_url: Optional[str] = None
    version_id: Optional[int] = None

    def to_domain(self) -> CommittedArtifact:
        return CommittedArtifact(
            version=self.version,
            platform=self.platform,
            final_size=self.final_size,
            content_hash=self.content_hash,
            download_url=self.download_url,
            version_id=self.version_id,
        )


def encode_start_form(
    metadata: UploadMetadata, total_size: int, file_name: str
) -> Dict[str, str]:
    return {
        "app_identifier": metadata.app_identifier,
        "version": metadata.version,
        "version_code": str(metadata.version_code),
        "platform": metadata.platform.value,
        "is_mandatory": "true" if metadata.is_mandatory else "false",
        "changelog": json.dumps({"changes": list(metadata.changelog)}),
        "file_size": str(total_size),
        "file_name": file_name,
    }


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict) and body.get("detail"):
        detail = body["detail"]
        return detail if isinstance(detail, str) else json.dumps(detail)
    return response.text or response.reason_phrase


class HttpSessionTransport:
    """Version-storage wire protocol over HTTP: start, chunk, complete."""

    def __init__(
        self,
        *,
        base_url: str,
        path_prefix: str = DEFAULT_PATH_PREFIX,
        api_key: str | None = None,
        auth_token: str | None = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._endpoint = base_url.rstrip("/") + "/" + path_prefix.strip("/")
        self._headers: Dict[str, str] = {}
        if api_key:
            self._headers["X-API-Key"] = api_key
        if auth_token:
            self._headers["Authorization"] = f"Bearer {auth_token}"
        self._timeout = httpx.Timeout(timeout_seconds)
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=self._timeout)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "HttpSessionTransport":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def start(
        self, metadata: UploadMetadata, total_size: int, file_name: str
    ) -> str:
        try:
            response = await self._post(
                "start", data=encode_start_form(metadata, total_size, file_name)
            )
            return StartUploadResponse.model_validate(response.json()).upload_id
        except httpx.TimeoutException as exc:
            raise SessionCreateError("request timed out") from exc
        except httpx.HTTPStatusError as exc:
            raise SessionCreateError(
                _error_detail(exc.response), status_code=exc.response.status_code
            ) from exc
        except httpx.HTTPError as exc:
            raise SessionCreateError(f"network error: {exc}") from exc
        except ValueError as exc:
            raise SessionCreateError(f"malformed start response: {exc}") from exc

    async def upload_chunk(self, session_id: str, index: int, data: bytes) -> None:
        try:
            await self._post(
                f"{session_id}/chunk/{index}",
                files={"chunk": (f"chunk_{index}", data, "application/octet-stream")},
            )
        except httpx.TimeoutException as exc:
            raise ChunkUploadError(
                "request timed out", index=index, session_id=session_id
            ) from exc
        except httpx.HTTPStatusError as exc:
            raise ChunkUploadError(
                _error_detail(exc.response),
                index=index,
                session_id=session_id,
                status_code=exc.response.status_code,
            ) from exc
        except httpx.HTTPError as exc:
            raise ChunkUploadError(
                f"network error: {exc}", index=index, session_id=session_id
            ) from exc

    async def complete(self, session_id: str) -> CommittedArtifact:
        try:
            response = await self._post(f"{session_id}/complete")
            return CompleteUploadResponse.model_validate(response.json()).to_domain()
        except httpx.TimeoutException as exc:
            raise SessionCompleteError(
                "request timed out", retryable=True, session_id=session_id
            ) from exc
        except httpx.HTTPStatusError as exc:
            status_code = exc.response.status_code
            # 409: chunks missing, re-upload them. Anything else is corruption
            # or a rejected session.
            raise SessionCompleteError(
                _error_detail(exc.response),
                retryable=status_code == 409 or status_code >= 500,
                session_id=session_id,
                status_code=status_code,
            ) from exc
        except httpx.HTTPError as exc:
            raise SessionCompleteError(
                f"network error: {exc}", retryable=True, session_id=session_id
            ) from exc
        except ValueError as exc:
            raise SessionCompleteError(
                f"malformed complete response: {exc}",
                retryable=False,
                session_id=session_id,
            ) from exc

    async def _post(self, path: str, **kwargs: Any) -> httpx.Response:
        url = f"{self._endpoint}/{path}"
        logger.info(f"API Request: POST {url}")
        response = await self._client.post(
            url, headers=self._headers, timeout=self._timeout, **kwargs
        )
        if response.is_error:
            logger.error(f"API Error: {response.status_code} {url}")
        else:
            logger.info(f"API Response: {response.status_code} {url}")
        response.raise_for_status()
        return response
