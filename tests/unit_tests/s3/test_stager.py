import hashlib
import os
from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from porter_provision.models import (
    EnvironmentDescriptor,
    KeyNamespace,
    ServiceDescriptor,
    key_root,
)
from porter_provision.s3.stager import (
    ContentAddressedStager,
    object_url,
    staged_key,
    transfer_config,
)
from tests.consts import TEST_BUCKET_NAME, TEST_KMS_KEY_ID
from tests.fixtures.provision_fixtures import TEST_PAYLOAD

PREFIX = "porter-deployment/svc/prod/1.0"


def client_error(code: str, operation: str = "HeadObject") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


def mock_client(head_error=None) -> MagicMock:
    client = MagicMock()
    if head_error is not None:
        client.head_object.side_effect = head_error
    return client


def test_stage_bytes_uploads_under_content_digest(s3_client):
    stager = ContentAddressedStager(s3_client)

    staged = stager.stage_bytes(b"hello", TEST_BUCKET_NAME, PREFIX, extension=".tar")

    digest = hashlib.sha256(b"hello").hexdigest()
    assert staged.digest == digest
    assert staged.key == f"{PREFIX}/{digest}.tar"
    body = s3_client.get_object(Bucket=TEST_BUCKET_NAME, Key=staged.key)["Body"].read()
    assert body == b"hello"


def test_staging_payload_file_produces_deployment_key(s3_client, service, environment, tmp_path):
    payload = tmp_path / "payload.tar"
    payload.write_bytes(TEST_PAYLOAD)
    stager = ContentAddressedStager(s3_client)

    staged = stager.stage_file(payload, TEST_BUCKET_NAME,
                               key_root(KeyNamespace.DEPLOYMENT, service, environment),
                               extension=".tar")

    d = hashlib.sha256(TEST_PAYLOAD).hexdigest()
    assert staged.key == f"porter-deployment/svc/prod/1.0/{d}.tar"


def test_file_changing_after_digest_still_uploads_digested_content(s3_client, tmp_path):
    payload = tmp_path / "payload.tar"
    payload.write_bytes(b"first build")
    stager = ContentAddressedStager(s3_client)
    head_object = s3_client.head_object

    def rewrite_then_probe(**kwargs):
        payload.write_bytes(b"second build")
        return head_object(**kwargs)

    with patch.object(s3_client, "head_object", side_effect=rewrite_then_probe):
        staged = stager.stage_file(payload, TEST_BUCKET_NAME, PREFIX, extension=".tar")

    assert staged.digest == hashlib.sha256(b"first build").hexdigest()
    body = s3_client.get_object(Bucket=TEST_BUCKET_NAME, Key=staged.key)["Body"].read()
    assert body == b"first build"


def test_staging_identical_bytes_twice_uploads_once(s3_client):
    stager = ContentAddressedStager(s3_client)

    with patch.object(s3_client, "upload_fileobj", wraps=s3_client.upload_fileobj) as upload:
        first = stager.stage_bytes(TEST_PAYLOAD, TEST_BUCKET_NAME, PREFIX, extension=".tar")
        second = stager.stage_bytes(TEST_PAYLOAD, TEST_BUCKET_NAME, PREFIX, extension=".tar")

    assert upload.call_count == 1
    assert first == second


def test_key_depends_on_content_and_namespace(service, environment):
    other_service = ServiceDescriptor(name="svc", version="1.1")
    digest_a = hashlib.sha256(b"a").hexdigest()
    digest_b = hashlib.sha256(b"b").hexdigest()

    keys = {
        staged_key(key_root(KeyNamespace.DEPLOYMENT, service, environment), digest_a),
        staged_key(key_root(KeyNamespace.DEPLOYMENT, service, environment), digest_b),
        staged_key(key_root(KeyNamespace.DEPLOYMENT, other_service, environment), digest_a),
        staged_key(key_root(KeyNamespace.TEMPLATE, service, environment), digest_a),
        staged_key(key_root(KeyNamespace.DEPLOYMENT, service, EnvironmentDescriptor(name="stage")), digest_a),
    }
    assert len(keys) == 5


def test_not_found_probe_leads_to_upload():
    client = mock_client(head_error=client_error("404"))
    stager = ContentAddressedStager(client)

    staged = stager.stage_bytes(b"data", TEST_BUCKET_NAME, PREFIX)

    assert staged is not None
    client.upload_fileobj.assert_called_once()


@pytest.mark.parametrize("code", ["403", "AccessDenied"])
def test_forbidden_probe_fails_without_upload(code):
    client = mock_client(head_error=client_error(code))
    stager = ContentAddressedStager(client)

    assert stager.stage_bytes(b"data", TEST_BUCKET_NAME, PREFIX) is None
    client.upload_fileobj.assert_not_called()


@pytest.mark.parametrize("error", [
    client_error("500"),
    client_error("SlowDown"),
    EndpointConnectionError(endpoint_url="https://s3.amazonaws.com"),
])
def test_other_probe_failures_fail_without_upload(error):
    client = mock_client(head_error=error)
    stager = ContentAddressedStager(client)

    assert stager.stage_bytes(b"data", TEST_BUCKET_NAME, PREFIX) is None
    client.upload_fileobj.assert_not_called()


def test_empty_object_is_uploaded_again(s3_client):
    key = staged_key(PREFIX, hashlib.sha256(b"data").hexdigest())
    s3_client.put_object(Bucket=TEST_BUCKET_NAME, Key=key, Body=b"")
    stager = ContentAddressedStager(s3_client)

    staged = stager.stage_bytes(b"data", TEST_BUCKET_NAME, PREFIX)

    assert staged.key == key
    assert s3_client.get_object(Bucket=TEST_BUCKET_NAME, Key=key)["Body"].read() == b"data"


def test_upload_options_become_extra_args():
    client = mock_client(head_error=client_error("NoSuchKey"))
    stager = ContentAddressedStager(client)

    stager.stage_bytes(b"{}", TEST_BUCKET_NAME, PREFIX,
                       content_type="application/json",
                       storage_class="STANDARD_IA",
                       sse_kms_key_id=TEST_KMS_KEY_ID)

    extra_args = client.upload_fileobj.call_args.kwargs["ExtraArgs"]
    assert extra_args == {
        "ContentType": "application/json",
        "StorageClass": "STANDARD_IA",
        "ServerSideEncryption": "aws:kms",
        "SSEKMSKeyId": TEST_KMS_KEY_ID,
    }


def test_upload_failure_fails_stage():
    client = mock_client(head_error=client_error("404"))
    client.upload_fileobj.side_effect = client_error("InternalError", "PutObject")
    stager = ContentAddressedStager(client)

    assert stager.stage_bytes(b"data", TEST_BUCKET_NAME, PREFIX) is None


def test_missing_file_fails_before_probe(tmp_path):
    client = mock_client()
    stager = ContentAddressedStager(client)

    assert stager.stage_file(tmp_path / "missing.tar", TEST_BUCKET_NAME, PREFIX) is None
    client.head_object.assert_not_called()


def test_transfer_concurrency_follows_cpu_count():
    with patch("porter_provision.s3.stager.os.cpu_count", return_value=7):
        assert transfer_config().max_concurrency == 7
    assert transfer_config().max_concurrency == (os.cpu_count() or 1)


def test_object_url():
    assert object_url("bucket", "a/b", "https://s3.amazonaws.com/") == "https://s3.amazonaws.com/bucket/a/b"
