import pytest
from google.api_core import exceptions as gcs_exceptions
from services.object_storage import (ObjectStorage, StorageNotConfiguredError, content_type_for, ensure_in_company,
                                     generate_object_path)
from utils.errors import BadRequestError, ForbiddenError, NotFoundError

def test_generate_object_path():
    path = generate_object_path(3, 'creatives', 'Banner.PNG', sub_path='/12/')
    prefix, name = path.rsplit('/', 1)
    assert prefix == 'companies/3/creatives/12'
    assert name.endswith('.png')

    assert generate_object_path(3, 'logos', 'logo').endswith('.jpg')
    with pytest.raises(BadRequestError):
        generate_object_path(3, 'secrets', 'a.png')
    with pytest.raises(BadRequestError):
        generate_object_path(3, 'creatives', 'a.png', sub_path='../../4')
    with pytest.raises(BadRequestError, match="Unsupported file type"):
        generate_object_path(3, 'logos', 'page.html')

def test_ensure_in_company():
    ensure_in_company('companies/3/logos/x.png', 3)
    for path in ('companies/4/logos/x.png', 'companies/3/../4/logos/x.png', 'companies/33/x.png', ''):
        with pytest.raises(ForbiddenError):
            ensure_in_company(path, 3)

def test_content_type_for():
    assert content_type_for('a.webp') == 'image/webp'
    assert content_type_for('a.bin') == 'image/jpeg'

def test_storage_requires_bucket():
    with pytest.raises(StorageNotConfiguredError):
        ObjectStorage(None, client=object())

def test_upload_and_download(mocker, app_context):
    client = mocker.Mock()
    blob = client.bucket.return_value.blob.return_value
    blob.download_as_bytes.return_value = b'bytes'
    blob.content_type = 'text/html'
    storage = ObjectStorage('bucket', client=client)

    storage.upload(b'bytes', 'companies/3/logos/x.png')
    blob.upload_from_string.assert_called_once_with(b'bytes', content_type='image/png')
    assert storage.download('companies/3/logos/x.png') == (b'bytes', 'image/png')
    assert storage.public_path('companies/3/logos/x.png') == '/objects/companies/3/logos/x.png'

def test_missing_object(mocker, app_context):
    client = mocker.Mock()
    blob = client.bucket.return_value.blob.return_value
    blob.download_as_bytes.side_effect = gcs_exceptions.NotFound('gone')
    blob.delete.side_effect = gcs_exceptions.NotFound('gone')
    storage = ObjectStorage('bucket', client=client)

    with pytest.raises(NotFoundError):
        storage.download('companies/3/logos/x.png')
    with pytest.raises(NotFoundError):
        storage.delete('companies/3/logos/x.png')
