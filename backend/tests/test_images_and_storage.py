import io
import re

import pytest
from PIL import Image

from conftest import png_bytes
from wala.utils.images import resize_image, validate_image
from wala.utils.storage import FileSystemStorage, StorageError, StorageFileNotFoundError

MB = 1024 * 1024


def _size(data):
    return Image.open(io.BytesIO(data)).size


def test_small_image_is_returned_unchanged():
    data = png_bytes(size=(640, 480))
    assert resize_image(data, 'image/png') is data


def test_large_image_fits_box_keeping_aspect_ratio():
    assert _size(resize_image(png_bytes(size=(1600, 1200)), 'image/png')) == (800, 600)
    wide = resize_image(png_bytes(size=(2000, 500)), 'image/png')
    assert _size(wide) == (800, 200)
    tall = resize_image(png_bytes(size=(900, 1800)), 'image/png')
    assert _size(tall) == (300, 600)


def test_resize_keeps_format():
    jpeg = resize_image(png_bytes(size=(1200, 900), fmt='JPEG'), 'image/jpeg')
    assert Image.open(io.BytesIO(jpeg)).format == 'JPEG'
    gif = resize_image(png_bytes(size=(1200, 900), fmt='GIF'), 'image/gif')
    assert Image.open(io.BytesIO(gif)).format == 'GIF'


@pytest.mark.parametrize('content_type', ['image/jpeg', 'image/jpg', 'image/png', 'image/gif'])
def test_validate_accepts_allowed_types(content_type):
    validate_image(png_bytes(), content_type, 5 * MB)


def test_validate_rejects_bad_uploads():
    with pytest.raises(ValueError, match='JPEG, PNG or GIF'):
        validate_image(png_bytes(), 'image/webp', 5 * MB)
    with pytest.raises(ValueError, match='too large'):
        validate_image(png_bytes(), 'image/png', 10)
    with pytest.raises(ValueError, match='not a valid image'):
        validate_image(b'definitely not a png', 'image/png', 5 * MB)


def test_store_names_files_and_loads_them(tmp_path):
    storage = FileSystemStorage(tmp_path / 'files')
    name = storage.store(b'abc', 'My Photo.PNG')
    assert re.fullmatch(r'\d{13}_My_Photo\.png', name)
    assert storage.load_bytes(name) == b'abc'
    assert storage.url_for(name) == f'/files/{name}'
    assert storage.is_local(f'/files/{name}')
    assert not storage.is_local('https://example.com/a.png')

    storage.delete(f'/files/{name}')
    assert not storage.exists(name)


def test_store_rejects_empty_and_traversal(tmp_path):
    storage = FileSystemStorage(tmp_path)
    with pytest.raises(StorageError):
        storage.store(b'', 'empty.png')
    with pytest.raises(StorageError):
        storage.store(b'x', '../evil.png')
    with pytest.raises(StorageError):
        storage.load('../etc/passwd')
    with pytest.raises(StorageFileNotFoundError):
        storage.load_bytes('missing.png')


def test_store_flattens_path_separators(tmp_path):
    storage = FileSystemStorage(tmp_path)
    name = storage.store(b'x', 'sub/dir\\pic.gif')
    assert '/' not in name and '\\' not in name
    assert (tmp_path / name).is_file()


def test_initialize_wipes_only_in_dev(tmp_path):
    root = tmp_path / 'uploads'
    storage = FileSystemStorage(root)
    storage.init()
    (root / 'keep.txt').write_text('data', encoding='utf-8')

    storage.initialize('prod')
    assert (root / 'keep.txt').exists()

    storage.initialize('dev')
    assert root.is_dir()
    assert list(root.iterdir()) == []


def test_initialize_creates_missing_dir(tmp_path):
    root = tmp_path / 'new-dir'
    FileSystemStorage(root).initialize('prod')
    assert root.is_dir()


def test_missing_file_route_returns_404(client):
    assert client.get('/files/nothing-here.png').status_code == 404
    assert client.get('/files/..%2F..%2Fetc%2Fpasswd').status_code == 404
