"""Integration tests for UploadPipeline against a local aiohttp server."""

import asyncio
import json

import pytest
from aiohttp import web

from recordrtc.capture.preview import create_object_url, revoke_object_url
from recordrtc.models.capture import MediaPayload, UploadDestination
from recordrtc.models.upload import UploadOutcome
from recordrtc.upload.pipeline import UPLOAD_PATH, UploadPipeline
from tests.conftest import serve

DESTINATION = UploadDestination(repository_id=4, draft_item_id=1234, context_id=56)
MEDIA = bytes(range(256)) * 20


class RepositoryStub:
    """Stands in for the repository upload endpoint."""

    def __init__(self, status=200, reply=None, hold=False):
        self.status = status
        self.reply = reply if reply is not None else {"url": "draftfile.php/recording.webm"}
        self.hold = hold
        self.requests = []
        self.arrived = asyncio.Event()
        self.release = asyncio.Event()

    async def handle_upload(self, request):
        form = await request.post()
        upload = form["repo_upload_file"]
        self.requests.append({
            "query": dict(request.query),
            "fields": {k: v for k, v in form.items() if k != "repo_upload_file"},
            "filename": upload.filename,
            "content": upload.file.read(),
        })
        self.arrived.set()
        if self.hold:
            await self.release.wait()
        body = self.reply if isinstance(self.reply, str) else json.dumps(self.reply)
        return web.Response(status=self.status, text=body)

    async def handle_media(self, request):
        return web.Response(body=MEDIA, content_type="video/webm")

    def app(self):
        app = web.Application()
        app.router.add_post(UPLOAD_PATH, self.handle_upload)
        app.router.add_get("/media/clip.webm", self.handle_media)
        return app


@pytest.fixture
def object_url():
    url = create_object_url(MediaPayload(fragments=(MEDIA[:1000], MEDIA[1000:]), mime_type="video/webm"))
    yield url
    revoke_object_url(url)


def make_pipeline(server, **kwargs):
    return UploadPipeline(str(server.make_url("/")), sesskey="s3cret", **kwargs)


@pytest.mark.integration
class TestUploadPipeline:
    """Test cases for upload outcomes."""

    @pytest.mark.asyncio
    async def test_successful_upload(self, object_url):
        stub = RepositoryStub()
        progress = []
        async with serve(stub.app()) as server:
            pipeline = make_pipeline(server, chunk_size=1024)
            result = await pipeline.upload(object_url, DESTINATION, "recording.webm",
                                           progress=lambda sent, total: progress.append((sent, total)))

        assert result.outcome is UploadOutcome.SUCCESS
        assert result.succeeded is True
        assert result.status == 200
        assert result.placeholder is None

        request = stub.requests[0]
        assert request["query"] == {"action": "upload"}
        assert request["content"] == MEDIA
        assert request["filename"] == "recording.webm"
        assert request["fields"] == {
            "sesskey": "s3cret",
            "repo_id": "4",
            "itemid": "1234",
            "savepath": "/",
            "ctx_id": "56",
            "overwrite": "1",
        }

        assert len(progress) > 1
        assert progress[-1][0] == progress[-1][1] == result.bytes_total
        assert [sent for sent, _ in progress] == sorted(sent for sent, _ in progress)
        assert result.bytes_sent == result.bytes_total
        assert pipeline.in_progress is False

    @pytest.mark.asyncio
    async def test_application_error(self, object_url):
        stub = RepositoryStub(reply={"errorcode": "maxbytes", "error": "File is too large"})
        async with serve(stub.app()) as server:
            result = await make_pipeline(server).upload(object_url, DESTINATION, "recording.webm")

        assert result.outcome is UploadOutcome.APPLICATION_ERROR
        assert result.error_code == "maxbytes"
        assert result.message == "File is too large"
        assert result.placeholder == "uploadfailed"

    @pytest.mark.asyncio
    async def test_non_json_reply(self, object_url):
        stub = RepositoryStub(reply="<html>login</html>")
        async with serve(stub.app()) as server:
            result = await make_pipeline(server).upload(object_url, DESTINATION, "recording.webm")

        assert result.outcome is UploadOutcome.APPLICATION_ERROR
        assert result.error_code == "invalidresponse"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status,placeholder", [
        (404, "uploadfailed404"),
        (500, "uploadfailed"),
        (403, "uploadfailed"),
    ])
    async def test_http_errors(self, object_url, status, placeholder):
        stub = RepositoryStub(status=status)
        async with serve(stub.app()) as server:
            result = await make_pipeline(server).upload(object_url, DESTINATION, "recording.webm")

        assert result.outcome is UploadOutcome.TRANSPORT_ERROR
        assert result.status == status
        assert result.placeholder == placeholder

    @pytest.mark.asyncio
    async def test_missing_object_url(self):
        stub = RepositoryStub()
        url = create_object_url(MediaPayload(fragments=(b"gone",), mime_type="audio/ogg"))
        revoke_object_url(url)
        async with serve(stub.app()) as server:
            result = await make_pipeline(server).upload(url, DESTINATION, "recording.ogg")

        assert result.outcome is UploadOutcome.FETCH_ERROR
        assert result.status == 404
        assert stub.requests == []

    @pytest.mark.asyncio
    async def test_fetch_over_http(self):
        stub = RepositoryStub()
        async with serve(stub.app()) as server:
            result = await make_pipeline(server).upload(
                str(server.make_url("/media/clip.webm")), DESTINATION, "clip.webm")

        assert result.outcome is UploadOutcome.SUCCESS
        assert stub.requests[0]["content"] == MEDIA

    @pytest.mark.asyncio
    async def test_fetch_over_http_not_found(self):
        stub = RepositoryStub()
        async with serve(stub.app()) as server:
            result = await make_pipeline(server).upload(
                str(server.make_url("/media/missing.webm")), DESTINATION, "clip.webm")

        assert result.outcome is UploadOutcome.FETCH_ERROR
        assert result.status == 404
        assert result.placeholder == "uploadfailed"

    @pytest.mark.asyncio
    async def test_abort(self, object_url):
        stub = RepositoryStub(hold=True)
        async with serve(stub.app()) as server:
            pipeline = make_pipeline(server)
            transfer = asyncio.create_task(pipeline.upload(object_url, DESTINATION, "recording.webm"))
            await asyncio.wait_for(stub.arrived.wait(), timeout=5)

            assert pipeline.in_progress is True
            assert pipeline.abort() is True
            result = await transfer
            stub.release.set()

        assert result.outcome is UploadOutcome.ABORTED
        assert result.placeholder == "uploadaborted"
        assert pipeline.in_progress is False
        assert pipeline.abort() is False

    @pytest.mark.asyncio
    async def test_timeout_counts_as_aborted(self, object_url):
        stub = RepositoryStub(hold=True)
        async with serve(stub.app()) as server:
            result = await make_pipeline(server, timeout=0.5).upload(object_url, DESTINATION, "recording.webm")
            stub.release.set()

        assert result.outcome is UploadOutcome.ABORTED

    @pytest.mark.asyncio
    async def test_one_upload_at_a_time(self, object_url):
        stub = RepositoryStub(hold=True)
        async with serve(stub.app()) as server:
            pipeline = make_pipeline(server)
            transfer = asyncio.create_task(pipeline.upload(object_url, DESTINATION, "recording.webm"))
            await asyncio.wait_for(stub.arrived.wait(), timeout=5)

            with pytest.raises(RuntimeError):
                await pipeline.upload(object_url, DESTINATION, "recording.webm")

            stub.release.set()
            result = await transfer

        assert result.outcome is UploadOutcome.SUCCESS

    @pytest.mark.asyncio
    async def test_connection_refused(self, object_url):
        pipeline = UploadPipeline("http://127.0.0.1:1", sesskey="s3cret", timeout=5)

        result = await pipeline.upload(object_url, DESTINATION, "recording.webm")

        assert result.outcome is UploadOutcome.TRANSPORT_ERROR
        assert result.status is None
        assert result.placeholder == "uploadfailed"
