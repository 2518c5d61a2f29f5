import hashlib

from filevault.utils.file_types import calculate_checksum, get_extension, is_variant_name, iter_variants


def test_get_extension_is_lower_case_without_dot():
    assert get_extension("Uploads/Photo.JPG") == "jpg"
    assert get_extension("archive.tar.gz") == "gz"
    assert get_extension("README") == ""


def test_calculate_checksum_matches_sha256(tmp_path):
    path = tmp_path / "data.bin"
    payload = b"x" * 20000
    path.write_bytes(payload)

    assert calculate_checksum(path) == hashlib.sha256(payload).hexdigest()


def test_is_variant_name():
    assert is_variant_name("photo__FitWzYwXQ.jpg", "photo.jpg")
    assert not is_variant_name("photo.jpg", "photo.jpg")
    assert not is_variant_name("photo__.jpg", "photo.jpg")
    assert not is_variant_name("photo__FitWzYwXQ.png", "photo.jpg")
    assert not is_variant_name("photograph.jpg", "photo.jpg")


def test_iter_variants_lists_only_variants(tmp_path):
    for name in ("photo.jpg", "photo__small.jpg", "photo__large.jpg", "other__small.jpg"):
        (tmp_path / name).write_bytes(b"x")

    assert [path.name for path in iter_variants(tmp_path, "photo.jpg")] == [
        "photo__large.jpg",
        "photo__small.jpg",
    ]
    assert list(iter_variants(tmp_path / "missing", "photo.jpg")) == []
