"""Upload pipeline.

``UploadOrchestrator.handle`` gates a request (IP whitelist, then rate
limit) and then runs each submitted file through the pipeline one at a
time:

    validate -> cache lookup -> compress (over threshold)
    -> convert (if requested) -> remote upload -> cache save
    -> gallery append

A failing file is reported in its own outcome and never stops the rest
of the batch. The orchestrator is the only component that talks to the
remote host.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

from .cache import CacheStore
from .compression import AdaptiveCompressor
from .config import Settings
from .conversion import FormatConverter
from .gallery import GalleryStore
from .models import Failure, FailureKind, UploadCandidate, format_file_size, message_for
from .rate_limit import RateLimiter
from .uploader import RemoteHostClient
from .validation import Validator, content_hash

logger = logging.getLogger(__name__)

FORMATS = ("original", "webp", "avif")
TRANSPORT_KINDS = {
    FailureKind.TRANSPORT,
    FailureKind.HTTP_STATUS,
    FailureKind.PARSE,
    FailureKind.REMOTE_REJECTED,
    FailureKind.MALFORMED_RESPONSE,
}

Outcome = Dict[str, Any]


def normalize_format(value: Optional[str]) -> str:
    value = (value or "").strip().lower()
    return value if value in FORMATS else "original"


class UploadOrchestrator:
    def __init__(
        self,
        settings: Settings,
        uploader: RemoteHostClient,
        gallery: Optional[GalleryStore] = None,
        cache: Optional[CacheStore] = None,
        rate_limiter: Optional[RateLimiter] = None,
        validator: Optional[Validator] = None,
        compressor: Optional[AdaptiveCompressor] = None,
        converter: Optional[FormatConverter] = None,
    ) -> None:
        self.settings = settings
        self.uploader = uploader
        self.gallery = gallery or GalleryStore(settings)
        self.cache = cache or CacheStore(settings)
        self.rate_limiter = rate_limiter or RateLimiter(settings)
        self.validator = validator or Validator(settings)
        self.compressor = compressor or AdaptiveCompressor()
        self.converter = converter or FormatConverter()

    def admit(self, client_id: str) -> Optional[Failure]:
        if self.settings.enable_ip_whitelist and client_id not in self.settings.ip_whitelist:
            return Failure(FailureKind.IP_BLOCKED, message_for(FailureKind.IP_BLOCKED))
        return self.rate_limiter.admit(client_id).failure

    def handle(
        self,
        client_id: str,
        files: Sequence[UploadCandidate],
        category: Optional[str] = None,
        target_format: Optional[str] = None,
    ) -> Dict[str, Any]:
        denied = self.admit(client_id)
        if denied is not None:
            logger.warning("Rejected request from %s: %s", client_id, denied.kind.value)
            return {"success": False, "message": denied.message}
        if not files:
            return {"success": False, "message": message_for(FailureKind.NO_FILE)}

        category = (category or "").strip() or self.settings.default_category
        target_format = normalize_format(target_format)
        results = [self._process_guarded(candidate, category, target_format, client_id) for candidate in files]
        return self.summarize(results)

    def _process_guarded(
        self,
        candidate: UploadCandidate,
        category: str,
        target_format: str,
        client_id: str,
    ) -> Outcome:
        try:
            return self.process_file(candidate, category, target_format, client_id)
        except Exception:
            logger.exception("Unexpected error processing %s from %s", candidate.name, client_id)
            return self._failed(candidate.name, Failure(FailureKind.PROCESSING, message_for(FailureKind.PROCESSING)))

    def summarize(self, results: List[Outcome]) -> Dict[str, Any]:
        gallery = self.gallery.snapshot()
        if len(results) == 1:
            result = results[0]
            if result["success"]:
                return {"success": True, "message": "Upload succeeded", "data": result["data"], "gallery": gallery}
            return {"success": False, "message": result["message"], "gallery": gallery}
        return {
            "success": True,
            "results": results,
            "total": len(results),
            "successful": sum(1 for r in results if r["success"]),
            "gallery": gallery,
        }

    @staticmethod
    def _failed(name: str, failure: Failure) -> Outcome:
        outcome = {"success": False, "fileName": name, "message": failure.message}
        if failure.kind in TRANSPORT_KINDS and failure.detail is not None:
            outcome["response"] = failure.detail
        return outcome

    def process_file(
        self,
        candidate: UploadCandidate,
        category: str,
        target_format: str = "original",
        client_id: str = "",
    ) -> Outcome:
        if not candidate.name or candidate.size == 0:
            return self._failed(candidate.name, Failure(FailureKind.UPLOAD_ERROR, message_for(FailureKind.UPLOAD_ERROR)))

        validated = self.validator.validate(candidate)
        if not validated.ok:
            return self._failed(candidate.original_name, validated.failure)
        candidate = validated.value
        digest = content_hash(candidate.read())

        # Keyed on the bytes as received, so a hit skips compression and conversion too.
        cached = self.cache.lookup(digest)
        if cached is not None:
            logger.info("Cache hit for %s (%s)", candidate.name, digest)
            return {"success": True, "data": cached, "cached": True}

        if candidate.size > self.settings.compress_threshold:
            compressed = self.compressor.compress(candidate, self.settings.compress_threshold)
            if not compressed.ok:
                return self._failed(candidate.name, compressed.failure)
            candidate = compressed.value.candidate
            logger.info(
                "Compression done: %s, original %s, compressed %s",
                candidate.name,
                format_file_size(compressed.value.original_size),
                format_file_size(candidate.size),
            )

        if target_format != "original":
            converted = self.converter.convert(candidate, target_format)
            if not converted.ok:
                return self._failed(candidate.name, converted.failure)
            candidate = converted.value

        logger.info(
            "Upload started: %s, size %s, IP %s",
            candidate.name,
            format_file_size(candidate.size),
            client_id,
        )
        uploaded = self.uploader.upload(candidate)
        if not uploaded.ok:
            logger.warning("Upload failed: %s, error: %s", candidate.name, uploaded.failure.message)
            return self._failed(candidate.name, uploaded.failure)

        data = uploaded.value.model_dump(by_alias=True)
        saved = self.cache.save(digest, data)
        if not saved.ok:
            logger.warning("Cache save failed for %s: %s", digest, saved.failure.detail)
        appended = self.gallery.append(self.gallery.record_for(uploaded.value, category))
        if not appended.ok:
            logger.error("Gallery append failed for %s: %s", data["url"], appended.failure.detail)

        logger.info("Upload succeeded: %s, result: %s", data["fileName"], data)
        return {"success": True, "message": "Upload succeeded", "data": data}
