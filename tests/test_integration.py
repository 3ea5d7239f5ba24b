"""Live tests against a local inference server and the cloud endpoint.

Skipped unless VL_API_KEY, VL_LOCAL_URL and VL_TEST_IMAGE are set. Values
are read at import time because the unit-test fixtures scrub VL_* variables.
"""

import os
from pathlib import Path

import pytest

from vlclient import (
    CaptionRequest,
    DetectRequest,
    PointRequest,
    QueryRequest,
    SegmentOutput,
    SegmentRequest,
    VLClient,
    collect_text,
)

API_KEY = os.environ.get("VL_API_KEY")
LOCAL_URL = os.environ.get("VL_LOCAL_URL")
TEST_IMAGE = os.environ.get("VL_TEST_IMAGE")

pytestmark = pytest.mark.skipif(
    not (API_KEY and LOCAL_URL and TEST_IMAGE),
    reason="VL_API_KEY, VL_LOCAL_URL and VL_TEST_IMAGE are required",
)

TIMEOUT = 100.0


@pytest.fixture
def image() -> bytes:
    return Path(TEST_IMAGE).read_bytes()


@pytest.fixture
async def clients():
    async with (
        VLClient(api_url=LOCAL_URL, timeout=TIMEOUT) as local,
        VLClient(api_key=API_KEY, timeout=TIMEOUT) as cloud,
    ):
        yield local, cloud


class TestCaption:
    @pytest.mark.asyncio
    async def test_local_and_cloud_match(self, clients, image):
        local, cloud = clients
        request = CaptionRequest(image=image, length="short")
        local_text = await collect_text((await local.caption(request)).caption)
        cloud_text = await collect_text((await cloud.caption(request)).caption)
        assert local_text
        assert cloud_text == local_text

    @pytest.mark.asyncio
    async def test_streamed_matches_buffered(self, clients, image):
        for client in clients:
            buffered = await client.caption(CaptionRequest(image=image, length="short"))
            streamed = await client.caption(
                CaptionRequest(image=image, length="short", stream=True)
            )
            assert await collect_text(streamed.caption) == await collect_text(
                buffered.caption
            )


class TestQuery:
    @pytest.mark.asyncio
    async def test_local_and_cloud_match(self, clients, image):
        local, cloud = clients
        request = QueryRequest(image=image, question="What colors are present?")
        local_text = await collect_text((await local.query(request)).answer)
        cloud_text = await collect_text((await cloud.query(request)).answer)
        assert local_text
        assert cloud_text == local_text

    @pytest.mark.asyncio
    async def test_streamed_answer(self, clients, image):
        for client in clients:
            output = await client.query(
                QueryRequest(image=image, question="Describe the scene.", stream=True)
            )
            assert await collect_text(output.answer)


class TestDetectAndPoint:
    @pytest.mark.asyncio
    async def test_detect_parity(self, clients, image):
        local, cloud = clients
        request = DetectRequest(image=image, object="face")
        local_out = await local.detect(request)
        cloud_out = await cloud.detect(request)
        assert len(cloud_out.objects) == len(local_out.objects)

    @pytest.mark.asyncio
    async def test_point_parity(self, clients, image):
        local, cloud = clients
        request = PointRequest(image=image, object="face")
        local_out = await local.point(request)
        cloud_out = await cloud.point(request)
        assert len(cloud_out.points) == len(local_out.points)


class TestSegment:
    @pytest.mark.asyncio
    async def test_streamed_collects_to_buffered(self, clients, image):
        for client in clients:
            buffered = await client.segment(SegmentRequest(image=image, object="face"))
            streamed = await client.segment(
                SegmentRequest(image=image, object="face", stream=True)
            )
            if not isinstance(streamed, SegmentOutput):
                streamed = await streamed.collect()
            assert streamed.path == buffered.path
