import pytest

from thekitchen.errors import InvalidContent
from thekitchen.storage.assets import LocalAssetStore, unique_filename


def test_upload_writes_file_and_returns_url(tmp_path):
    assets = LocalAssetStore(tmp_path, base_url="/uploads")
    url = assets.upload(b"\x89PNG fake", "player-1", mime_type="image/png")

    assert url.startswith("/uploads/submission_")
    assert url.endswith(".png")
    assert (tmp_path / url.rsplit("/", 1)[1]).read_bytes() == b"\x89PNG fake"


def test_upload_keeps_client_extension(tmp_path):
    assets = LocalAssetStore(tmp_path)
    url = assets.upload(b"data", "p", mime_type="image/jpeg", file_name="dinner.JPEG")
    assert url.endswith(".jpeg")


@pytest.mark.parametrize(
    "data,mime",
    [(b"", "image/png"), (b"data", "application/pdf"), (b"x" * 11, "image/png")],
)
def test_upload_rejects_bad_content(tmp_path, data, mime):
    assets = LocalAssetStore(tmp_path, max_bytes=10)
    with pytest.raises(InvalidContent):
        assets.upload(data, "p", mime_type=mime)
    assert list(tmp_path.iterdir()) == []


def test_delete_removes_only_own_files(tmp_path):
    assets = LocalAssetStore(tmp_path, base_url="/uploads")
    url = assets.upload(b"data", "p", mime_type="image/png")

    assert assets.delete("/elsewhere/x.png") is False
    assert assets.delete("/uploads/../secret") is False
    assert assets.delete(url) is True
    assert assets.delete(url) is False


def test_unique_filenames_differ():
    assert unique_filename("image/png") != unique_filename("image/png")
