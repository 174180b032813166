"""Upload pipeline that hands a finalized recording to the repository endpoint."""

import asyncio
import json
import logging
from typing import AsyncIterator, Callable, List, Optional

import aiohttp

from ..capture.preview import is_object_url, resolve_object_url
from ..errors import ApplicationError, FetchError, TransportError, UploadAborted, UploadError
from ..models.capture import UploadDestination
from ..models.upload import UploadOutcome, UploadResult, UploadTask

logger = logging.getLogger(__name__)

UPLOAD_PATH = "/repository/repository_ajax.php"
SAVE_PATH = "/"

ProgressCallback = Callable[[int, int], None]


class _BodyCollector:
    """Writer that gathers a serialized multipart body in memory."""

    def __init__(self):
        self.parts: List[bytes] = []

    async def write(self, chunk: bytes) -> None:
        self.parts.append(bytes(chunk))

    def getvalue(self) -> bytes:
        return b"".join(self.parts)


class UploadPipeline:
    """Uploads recordings with progress reporting and outcome classification.

    There is no automatic retry: every terminal outcome is returned to the
    caller, recovery is a new capture-and-upload cycle.
    """

    def __init__(self,
                 wwwroot: str,
                 sesskey: str,
                 timeout: float = 300.0,
                 chunk_size: int = 65536):
        """Initialize upload pipeline.

        Args:
            wwwroot: Base URL of the site hosting the upload endpoint
            sesskey: Session token sent with every upload
            timeout: Total time allowed for one upload, in seconds
            chunk_size: Size of the slices the body is streamed in
        """
        self.upload_url = wwwroot.rstrip("/") + UPLOAD_PATH
        self.sesskey = sesskey
        self.timeout = timeout
        self.chunk_size = chunk_size

        self.current_task: Optional[UploadTask] = None
        self._transfer: Optional[asyncio.Task] = None
        self._abort_requested = False

        logger.info(f"UploadPipeline initialized with endpoint: {self.upload_url}")

    @property
    def in_progress(self) -> bool:
        return self._transfer is not None and not self._transfer.done()

    def abort(self) -> bool:
        """Cancel the upload in flight.

        Returns:
            True if there was an upload to abort
        """
        if not self.in_progress:
            return False
        logger.info("Aborting upload")
        self._abort_requested = True
        self._transfer.cancel()
        return True

    async def upload(self,
                     source_url: str,
                     destination: UploadDestination,
                     filename: str,
                     progress: Optional[ProgressCallback] = None) -> UploadResult:
        """Fetch a finalized recording and upload it.

        Args:
            source_url: Where the payload lives (object URL or http(s) URL)
            destination: Repository identifiers to upload into
            filename: Name the file is stored under
            progress: Called with (bytes_sent, bytes_total) as the body is sent

        Returns:
            UploadResult with the classified outcome
        """
        if self.in_progress:
            raise RuntimeError("An upload is already in progress")

        self._abort_requested = False
        self.current_task = None
        self._transfer = asyncio.ensure_future(
            self._run(source_url, destination, filename, progress))
        try:
            status, body = await self._transfer
            result = self._classify_response(status, body)
        except asyncio.CancelledError:
            if not self._abort_requested:
                raise
            result = self._failure(UploadOutcome.ABORTED, UploadAborted("Upload aborted"))
        except asyncio.TimeoutError:
            result = self._failure(UploadOutcome.ABORTED, UploadAborted("Upload timed out"))
        except FetchError as e:
            result = self._failure(UploadOutcome.FETCH_ERROR, e, status=e.status)
        except aiohttp.ClientError as e:
            result = self._failure(UploadOutcome.TRANSPORT_ERROR,
                                   TransportError(f"Upload request failed: {e}"))
        finally:
            self._transfer = None

        task = self.current_task
        if task is not None:
            result.bytes_sent = task.bytes_sent
            result.bytes_total = task.bytes_total
        self.current_task = None
        logger.info(f"Upload of {filename} finished: {result.outcome.value}")
        return result

    async def _run(self, source_url: str, destination: UploadDestination,
                   filename: str, progress: Optional[ProgressCallback]):
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            blob = await self.fetch_payload(session, source_url)
            task = UploadTask(blob=blob, filename=filename, destination=destination)
            self.current_task = task

            form = self._build_form(task)
            body = await self._serialize(form)
            task.bytes_total = len(body)

            headers = {
                "Content-Type": form.content_type,
                "Content-Length": str(len(body)),
            }
            logger.debug(f"Uploading {len(blob)} byte payload ({len(body)} byte body) to {self.upload_url}")
            async with session.post(self.upload_url,
                                    params={"action": "upload"},
                                    data=self._stream_body(body, task, progress),
                                    headers=headers) as response:
                return response.status, await response.text()

    async def fetch_payload(self, session: aiohttp.ClientSession, source_url: str) -> bytes:
        """Retrieve the payload bytes behind a preview URL.

        Raises:
            FetchError: If the payload cannot be retrieved
        """
        if is_object_url(source_url):
            payload = resolve_object_url(source_url)
            if payload is None:
                raise FetchError(f"No recording at {source_url}", status=404)
            return payload.data

        async with session.get(source_url) as response:
            if response.status != 200:
                raise FetchError(f"Fetching {source_url} returned {response.status}",
                                 status=response.status)
            return await response.read()

    def _build_form(self, task: UploadTask) -> aiohttp.MultipartWriter:
        destination = task.destination
        form = aiohttp.FormData()
        form.add_field("repo_upload_file", task.blob, filename=task.filename,
                       content_type="application/octet-stream")
        form.add_field("sesskey", self.sesskey)
        form.add_field("repo_id", str(destination.repository_id))
        form.add_field("itemid", str(destination.draft_item_id))
        form.add_field("savepath", SAVE_PATH)
        form.add_field("ctx_id", str(destination.context_id))
        form.add_field("overwrite", "1")
        return form()

    async def _serialize(self, form: aiohttp.MultipartWriter) -> bytes:
        collector = _BodyCollector()
        await form.write(collector)
        return collector.getvalue()

    async def _stream_body(self, body: bytes, task: UploadTask,
                           progress: Optional[ProgressCallback]) -> AsyncIterator[bytes]:
        view = memoryview(body)
        for offset in range(0, len(body), self.chunk_size):
            piece = bytes(view[offset:offset + self.chunk_size])
            yield piece
            task.bytes_sent = offset + len(piece)
            if progress:
                progress(task.bytes_sent, task.bytes_total)

    def _classify_response(self, status: int, text: str) -> UploadResult:
        if status != 200:
            error = TransportError(f"Upload failed with HTTP {status}", status=status)
            return self._failure(UploadOutcome.TRANSPORT_ERROR, error, status=status)

        try:
            response = json.loads(text)
        except ValueError:
            error = ApplicationError("Upload response was not JSON", error_code="invalidresponse")
            return self._failure(UploadOutcome.APPLICATION_ERROR, error, status=status)

        # The endpoint reports errors with a 200 status code.
        if isinstance(response, dict) and response.get("errorcode"):
            error = ApplicationError(response.get("error", "Upload rejected"),
                                     error_code=str(response["errorcode"]))
            return self._failure(UploadOutcome.APPLICATION_ERROR, error, status=status)

        return UploadResult(outcome=UploadOutcome.SUCCESS, status=status)

    def _failure(self, outcome: UploadOutcome, error: UploadError,
                 status: Optional[int] = None) -> UploadResult:
        logger.error(f"Upload {outcome.value}: {error}")
        return UploadResult(
            outcome=outcome,
            status=status,
            error_code=getattr(error, "error_code", None),
            message=str(error),
            placeholder=error.placeholder,
        )
