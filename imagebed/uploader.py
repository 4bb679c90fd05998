"""Client for the remote image host.

The host takes one multipart POST per image and answers with JSON of
the form ``{"success": true, "object": {"url": ..., ...}}``. Every way
that exchange can go wrong becomes a tagged ``Failure``; nothing is
retried, and the remote status or body is kept in ``Failure.detail`` for
diagnostics.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from .config import Settings
from .models import FailureKind, Result, UploadCandidate, UploadData, format_file_size, message_for

logger = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/139.0.0.0 Safari/537.36"
)


class RemoteHostClient:
    def __init__(self, settings: Settings, transport: Optional[httpx.BaseTransport] = None) -> None:
        self.settings = settings
        self._transport = transport

    def _client(self) -> httpx.Client:
        return httpx.Client(
            timeout=self.settings.upload_timeout,
            follow_redirects=True,
            verify=self.settings.verify_tls,
            transport=self._transport,
            headers={
                "Accept": "application/json, text/plain, */*",
                "Origin": "https://author.goofish.com",
                "Referer": "https://author.goofish.com/",
                "User-Agent": USER_AGENT,
            },
            cookies={"cookie2": self.settings.session_cookie},
        )

    def upload(self, candidate: UploadCandidate) -> Result[UploadData]:
        files = {"file": (candidate.name, candidate.read(), candidate.mime_type)}
        try:
            with self._client() as client:
                response = client.post(self.settings.upload_url, params=self.settings.upload_query, files=files)
        except httpx.HTTPError as exc:
            return Result.fail(FailureKind.TRANSPORT, f"{message_for(FailureKind.TRANSPORT)}: {exc}")

        if response.status_code != 200:
            return Result.fail(
                FailureKind.HTTP_STATUS,
                f"{message_for(FailureKind.HTTP_STATUS)}: {response.status_code}",
                response.text,
            )
        try:
            body = response.json()
        except ValueError:
            return Result.fail(FailureKind.PARSE, detail=response.text)
        if not isinstance(body, dict) or not body:
            return Result.fail(FailureKind.PARSE, detail=response.text)
        if body.get("success") is not True:
            return Result.fail(FailureKind.REMOTE_REJECTED, detail=body)

        obj = body.get("object")
        if not isinstance(obj, dict) or "url" not in obj:
            return Result.fail(FailureKind.MALFORMED_RESPONSE, detail=body)
        return Result.success(self._parse_object(obj, candidate))

    @staticmethod
    def _parse_object(obj: dict, candidate: UploadCandidate) -> UploadData:
        size: Any = obj.get("size")
        try:
            size = int(size) if size is not None else candidate.size
        except (TypeError, ValueError):
            size = candidate.size
        try:
            quality = int(obj.get("quality", 100))
        except (TypeError, ValueError):
            quality = 100
        return UploadData(
            url=obj["url"],
            file_name=obj.get("fileName") or candidate.stem,
            size=format_file_size(size),
            pix=str(obj.get("pix") or "unknown"),
            file_id=str(obj.get("fileId") or ""),
            quality=quality,
        )
