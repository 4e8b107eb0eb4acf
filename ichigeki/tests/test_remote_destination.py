"""
Tests for the streaming remote destination and its S3 object store client.
"""

import io
from datetime import date

import boto3
import pytest
from botocore.exceptions import ClientError
from botocore.stub import Stubber

from ichigeki.core.errors import UploadError
from ichigeki.core.guard import ExecutionGuard
from ichigeki.service.destinations import object_store
from ichigeki.service.destinations.conduit import ConduitClosedError
from ichigeki.service.destinations.object_store import (
    CONTENT_TYPE,
    TRANSFER_CONFIG,
    ObjectStoreError,
    S3ObjectStore,
)
from ichigeki.service.destinations.remote import StreamingRemoteDestination


def client_error(code, status, operation="UploadPart"):
    return ClientError(
        {"Error": {"Code": code, "Message": code}, "ResponseMetadata": {"HTTPStatusCode": status}},
        operation,
    )


class FakeS3Client:
    """Stands in for a boto3 S3 client; upload_fileobj reads like s3transfer."""

    def __init__(self, upload_error=None, read_size=5000):
        self.upload_error = upload_error
        self.read_size = read_size
        self.objects = {}
        self.calls = []
        self.extra_args = None
        self.config = None
        self.closed = False

    def head_object(self, Bucket, Key):
        self.calls.append("head_object")
        if (Bucket, Key) not in self.objects:
            raise client_error("404", 404, "HeadObject")
        return {"ContentLength": len(self.objects[(Bucket, Key)])}

    def upload_fileobj(self, Fileobj, Bucket, Key, ExtraArgs=None, Config=None):
        self.calls.append("upload_fileobj")
        self.extra_args = ExtraArgs
        self.config = Config
        body = bytearray()
        while True:
            chunk = Fileobj.read(self.read_size)
            if not chunk:
                break
            body.extend(chunk)
            if self.upload_error is not None:
                raise self.upload_error
        self.objects[(Bucket, Key)] = bytes(body)

    def close(self):
        self.closed = True


class BrokenStore:
    """Store whose upload dies, optionally after consuming the first bytes."""

    def __init__(self, consume_first=True):
        self.consume_first = consume_first

    def head_object(self, bucket, key):
        return {}

    def put_object(self, bucket, key, body):
        if self.consume_first:
            body.read(5)
        raise OSError("connection reset")

    def close(self):
        pass


def remote(store, prefix="logs/", capacity=1024):
    destination = StreamingRemoteDestination(
        bucket="bucket", prefix=prefix, store=store, capacity=capacity
    )
    destination.set_name("job")
    return destination


@pytest.fixture
def s3_client():
    return boto3.client(
        "s3",
        region_name="us-east-1",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )


@pytest.fixture
def created_clients(monkeypatch):
    """Replace boto3.client so stores build FakeS3Client instances."""
    created = []

    def make_client(service, **kwargs):
        client = FakeS3Client()
        created.append((service, kwargs, client))
        return client

    monkeypatch.setattr(object_store.boto3, "client", make_client)
    return created


class TestNaming:
    @pytest.mark.parametrize("prefix", ["", "/"])
    def test_empty_and_root_prefix_match(self, prefix):
        destination = remote(BrokenStore(), prefix=prefix)
        assert destination.key == "job.log"
        assert destination.location == "s3://bucket/job.log"

    def test_leading_slashes_stripped(self):
        destination = remote(BrokenStore(), prefix="/daily/")
        assert destination.key == "daily/job.log"

    def test_postfix(self):
        destination = StreamingRemoteDestination(bucket="bucket", postfix=".txt", store=BrokenStore())
        destination.set_name("job")
        assert destination.location == "s3://bucket/job.txt"


class TestExists:
    def test_not_found(self, s3_client):
        stubber = Stubber(s3_client)
        stubber.add_client_error(
            "head_object",
            service_error_code="404",
            http_status_code=404,
            expected_params={"Bucket": "bucket", "Key": "logs/job.log"},
        )
        with stubber:
            assert remote(S3ObjectStore(client=s3_client)).exists() is False
        stubber.assert_no_pending_responses()

    def test_found(self, s3_client):
        stubber = Stubber(s3_client)
        stubber.add_response(
            "head_object", {"ContentLength": 12}, {"Bucket": "bucket", "Key": "logs/job.log"}
        )
        with stubber:
            assert remote(S3ObjectStore(client=s3_client)).exists() is True

    def test_other_errors_propagate(self, s3_client):
        stubber = Stubber(s3_client)
        stubber.add_client_error(
            "head_object", service_error_code="403", service_message="Forbidden", http_status_code=403
        )
        with stubber:
            with pytest.raises(ObjectStoreError, match="Forbidden") as exc:
                remote(S3ObjectStore(client=s3_client)).exists()
        assert exc.value.status_code == 403


class TestStore:
    def test_client_from_environment(self, created_clients, monkeypatch):
        monkeypatch.setenv("AWS_DEFAULT_REGION", "ap-northeast-1")
        monkeypatch.setenv("ICHIGEKI_S3_ENDPOINT", "http://localhost:9000")

        store = S3ObjectStore.from_env()
        assert created_clients == []

        client = store.client
        service, kwargs, created = created_clients[0]
        assert client is created
        assert service == "s3"
        assert kwargs == {"endpoint_url": "http://localhost:9000", "region_name": "ap-northeast-1"}

    def test_explicit_endpoint_wins(self, created_clients, monkeypatch):
        monkeypatch.setenv("ICHIGEKI_S3_ENDPOINT", "http://localhost:9000")
        assert S3ObjectStore.from_env("http://minio:9000").endpoint_url == "http://minio:9000"

    def test_close_only_owned_client(self, created_clients):
        store = S3ObjectStore()
        client = store.client
        store.close()
        assert client.closed is True

        shared = FakeS3Client()
        S3ObjectStore(client=shared).close()
        assert shared.closed is False


class TestUpload:
    def test_streams_more_than_capacity(self):
        client = FakeS3Client()
        destination = remote(S3ObjectStore(client=client), capacity=1024)

        stdout, stderr = destination.open()
        assert stdout is stderr
        conduit = destination._conduit
        payload = b"0123456789abcdef" * 8192
        for offset in range(0, len(payload), 3000):
            stdout.write(payload[offset : offset + 3000])
        destination.close()

        assert client.objects[("bucket", "logs/job.log")] == payload
        assert client.extra_args == {"ContentType": CONTENT_TYPE}
        assert client.config is TRANSFER_CONFIG
        assert conduit.peak <= 1024

    def test_upload_failure_on_close(self):
        client = FakeS3Client(upload_error=client_error("AccessDenied", 403))
        destination = remote(S3ObjectStore(client=client))
        stdout, _ = destination.open()
        stdout.write(b"x")
        with pytest.raises(UploadError, match="AccessDenied"):
            destination.close()

    def test_failure_without_writes_surfaces_on_close(self):
        destination = remote(BrokenStore(consume_first=False))
        destination.open()
        with pytest.raises(UploadError, match="connection reset"):
            destination.close()

    def test_failure_surfaces_once_on_next_write(self):
        destination = remote(BrokenStore(), capacity=16)
        stdout, _ = destination.open()
        stdout.write(b"first")
        destination._worker.join(timeout=5)

        with pytest.raises(UploadError, match="connection reset"):
            stdout.write(b"second")
        with pytest.raises(ConduitClosedError):
            stdout.write(b"third")

        destination.close()

    def test_close_is_idempotent(self):
        destination = remote(S3ObjectStore(client=FakeS3Client()))
        destination.close()
        destination.open()
        destination.close()
        destination.close()

    def test_owned_store_released_on_close(self, created_clients):
        destination = StreamingRemoteDestination(bucket="bucket", endpoint_url="http://localhost:9000")
        destination.set_name("job")
        stdout, _ = destination.open()
        stdout.write(b"run!")
        destination.close()

        _, kwargs, client = created_clients[0]
        assert kwargs["endpoint_url"] == "http://localhost:9000"
        assert client.objects[("bucket", "job.log")] == b"run!"
        assert client.closed is True

    def test_given_store_left_open(self):
        client = FakeS3Client()
        destination = remote(S3ObjectStore(client=client))
        destination.open()
        destination.close()
        assert client.closed is False


class TestGuardUpload:
    def test_transcript_uploaded(self, clock):
        client = FakeS3Client()
        destination = remote(S3ObjectStore(client=client), capacity=64)

        def script(ctx, stdout, stderr):
            for i in range(50):
                stdout.write(f"line {i}\n")

        guard = ExecutionGuard(
            script=script,
            name="job",
            exec_date=date(2022, 6, 5),
            confirm_dialog=False,
            destination=destination,
            clock=clock,
            stdout=io.BytesIO(),
            stderr=io.BytesIO(),
        )
        guard.run()

        body = client.objects[("bucket", "logs/job.log")]
        assert body.startswith(b"# This log is generated dy github.com/mashiike/ichigeki.Hissatsu\nname: job\n")
        assert b"line 49\n\n---\nend: " in body
        assert client.calls == ["head_object", "upload_fileobj"]
