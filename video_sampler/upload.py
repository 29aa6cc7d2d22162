# video_sampler/upload.py
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterable, List, Optional, Protocol, Sequence, Tuple

from viam.app.viam_client import ViamClient
from viam.rpc.dial import DialOptions

from .domain import Frame
from .errors import NoFramesError, UploadConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 50


class DatasetUploader(Protocol):
    """A remote image dataset service. Implementations own credentials and transport."""

    def upload_image(self, data: bytes, part_id: str, tags: List[str], file_extension: str) -> str:
        """Upload one image; returns the service's id for it."""
        ...

    def add_to_dataset(self, ids: List[str], dataset_id: str) -> None:
        ...

    def close(self) -> None:
        ...


UploaderFactory = Callable[[str, str], DatasetUploader]


def _preview(secret: str) -> str:
    return f"{secret[:4]}...{secret[-4:]}" if len(secret) > 8 else "(short)"


class ViamDatasetUploader:
    """
    DatasetUploader backed by the Viam data API.

    Frames are recorded as camera captures of a fixed component so they show up
    under one source in the Viam Data tab. The SDK is asyncio based; every call
    runs to completion on a private event loop, which lets upload_frames()
    drive it synchronously.
    """

    COMPONENT_TYPE = "rdk:component:camera"
    COMPONENT_NAME = "video-sampler"
    METHOD_NAME = "ReadImage"

    def __init__(self, client: ViamClient, loop: asyncio.AbstractEventLoop):
        self._client = client
        self._loop = loop

    @classmethod
    def connect(cls, api_key: str, api_key_id: str) -> "ViamDatasetUploader":
        loop = asyncio.new_event_loop()
        try:
            opts = DialOptions.with_api_key(api_key=api_key, api_key_id=api_key_id)
            client = loop.run_until_complete(ViamClient.create_from_dial_options(opts))
        except Exception:
            loop.close()
            raise
        logger.info("connected to Viam with key id %s", _preview(api_key_id))
        return cls(client, loop)

    def upload_image(self, data: bytes, part_id: str, tags: List[str], file_extension: str) -> str:
        now = datetime.now()
        return self._loop.run_until_complete(
            self._client.data_client.binary_data_capture_upload(
                binary_data=data,
                part_id=part_id,
                component_type=self.COMPONENT_TYPE,
                component_name=self.COMPONENT_NAME,
                method_name=self.METHOD_NAME,
                file_extension=file_extension,
                tags=list(tags),
                data_request_times=(now, now),
            )
        )

    def add_to_dataset(self, ids: List[str], dataset_id: str) -> None:
        self._loop.run_until_complete(
            self._client.data_client.add_binary_data_to_dataset_by_ids(binary_ids=list(ids), dataset_id=dataset_id)
        )

    def close(self) -> None:
        try:
            self._client.close()
        finally:
            self._loop.close()
        logger.debug("Viam client closed")


@dataclass(frozen=True)
class UploadResult:
    ids: List[str]
    dataset_id: str
    tags: List[str]

    @property
    def count(self) -> int:
        return len(self.ids)

    def summary(self) -> str:
        n = self.count
        return f"{n} image{'' if n == 1 else 's'} uploaded to dataset {self.dataset_id} with tag {self.tags[0]}."


def parse_tags(text: str) -> List[str]:
    """Comma separated -> stripped, non-empty tags."""
    return [t.strip() for t in (text or "").split(",") if t.strip()]


def build_upload_tags(sequence_tag: str, extra: Iterable[str] = ()) -> List[str]:
    """Sequence tag first, then extras; duplicates dropped keeping first-seen order."""
    seen = set()
    out: List[str] = []
    for tag in [sequence_tag, *extra]:
        if tag and tag not in seen:
            seen.add(tag)
            out.append(tag)
    return out


def require_credentials(api_key: str, api_key_id: str, dataset_id: str) -> Tuple[str, str]:
    """Stripped (api_key, api_key_id). All three values must be present before connecting."""
    api_key = (api_key or "").strip()
    api_key_id = (api_key_id or "").strip()
    if not api_key or not api_key_id or not (dataset_id or "").strip():
        raise UploadConfigurationError("Provide API Key, Key ID, and Dataset ID.", title="Missing credentials")
    return api_key, api_key_id


def validate_target(part_id: str, dataset_id: str) -> Tuple[str, str]:
    part_id = (part_id or "").strip()
    dataset_id = (dataset_id or "").strip()
    if not part_id:
        raise UploadConfigurationError("Provide a Part ID to identify the uploader source.", title="Missing Part ID")
    if not dataset_id:
        raise UploadConfigurationError("Provide a Dataset ID.", title="Missing Dataset ID")
    return part_id, dataset_id


def chunked(items: Sequence[str], size: int) -> List[List[str]]:
    size = max(1, int(size))
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


def upload_frames(
    frames: Sequence[Frame],
    uploader: DatasetUploader,
    part_id: str,
    dataset_id: str,
    tags: Sequence[str],
    file_extension: str = ".jpg",
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    progress: Optional[Callable[[int], None]] = None,
) -> UploadResult:
    """
    Upload every frame in index order, then add the returned ids to the
    dataset in chunks.

    Validation happens before anything is sent. Uploader exceptions propagate;
    images uploaded before the failure stay uploaded.
    """
    if not frames:
        raise NoFramesError("Sample frames before uploading.")
    part_id, dataset_id = validate_target(part_id, dataset_id)

    tags = list(tags)
    ordered = sorted(frames, key=lambda f: f.index)
    total = len(ordered)
    logger.info("uploading %d frames part=%s dataset=%s tags=%s", total, part_id, dataset_id, tags)

    ids: List[str] = []
    for i, frame in enumerate(ordered):
        logger.debug("uploading frame %d/%d t=%.3fs bytes=%d", i + 1, total, frame.time, len(frame.image))
        ids.append(uploader.upload_image(frame.image, part_id, tags, file_extension))
        if progress is not None:
            progress(round(100 * (i + 1) / total))

    for chunk in chunked(ids, chunk_size):
        logger.debug("adding %d ids to dataset %s", len(chunk), dataset_id)
        uploader.add_to_dataset(chunk, dataset_id)

    logger.info("upload complete: %d images", len(ids))
    return UploadResult(ids=ids, dataset_id=dataset_id, tags=tags)
