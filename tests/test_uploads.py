import pytest
from botocore.exceptions import ClientError

from iaschool.main import app
from iaschool.routers.uploads import get_upload_service
from iaschool.services.upload_service import UploadService

from .factories import auth_headers


class FakeS3Client:
    def __init__(self, fail=False):
        self.fail = fail
        self.calls = []

    def generate_presigned_url(self, operation, Params, ExpiresIn):
        if self.fail:
            raise ClientError({"Error": {"Code": "AccessDenied", "Message": "denied"}}, operation)
        self.calls.append((operation, Params, ExpiresIn))
        return f"https://s3.test/{Params['Bucket']}/{Params['Key']}?signature=abc"


@pytest.fixture
def s3_client():
    client = FakeS3Client()
    app.dependency_overrides[get_upload_service] = lambda: UploadService(s3_client=client)
    return client


class TestPresignedUploads:
    async def test_presigned_put(self, client, parent, s3_client):
        response = await client.post(
            "/api/v1/uploads/presigned",
            json={"file_name": "Acta de nacimiento.pdf", "content_type": "application/pdf", "folder": "enrollments"},
            headers=auth_headers(parent)
        )
        assert response.status_code == 200
        data = response.json()
        assert data["key"].startswith(f"{parent.school_id}/enrollments/")
        assert data["key"].endswith("-Acta-de-nacimiento.pdf")
        assert data["file_url"].endswith(data["key"])
        assert data["upload_url"].startswith("https://s3.test/")

        operation, params, _ = s3_client.calls[0]
        assert operation == "put_object"
        assert params["ContentType"] == "application/pdf"

    async def test_disallowed_content_type(self, client, parent, s3_client):
        response = await client.post(
            "/api/v1/uploads/presigned",
            json={"file_name": "script.sh", "content_type": "application/x-sh"},
            headers=auth_headers(parent)
        )
        assert response.status_code == 400
        assert s3_client.calls == []

    async def test_storage_failure(self, client, parent):
        app.dependency_overrides[get_upload_service] = lambda: UploadService(s3_client=FakeS3Client(fail=True))
        response = await client.post(
            "/api/v1/uploads/presigned",
            json={"file_name": "foto.jpg", "content_type": "image/jpeg"},
            headers=auth_headers(parent)
        )
        assert response.status_code == 502
        assert response.json()["detail"]["service"] == "storage"

    async def test_requires_authentication(self, client, s3_client):
        response = await client.post(
            "/api/v1/uploads/presigned", json={"file_name": "foto.jpg", "content_type": "image/jpeg"}
        )
        assert response.status_code == 401
