import asyncio
import re

import pytest

from uploadkit.core import naming
from uploadkit.core.config import UploadConfig
from uploadkit.core.errors import (
    NoFilesSubmitted,
    ParseError,
    RandomnessUnavailable,
    SizeLimitExceeded,
    UploadIOError,
    ValidationError,
)
from uploadkit.services.uploads import UploadedFile, upload_files, upload_one_file


def run_upload(request, upload_dir, **kwargs):
    return asyncio.run(upload_files(request, upload_dir, **kwargs))


def run_upload_one(request, upload_dir, **kwargs):
    return asyncio.run(upload_one_file(request, upload_dir, **kwargs))


def test_single_png_is_stored_under_generated_name(tmp_path, multipart, make_request, png_bytes):
    body, content_type = multipart([("file", "pic.png", png_bytes, "image/png")])
    upload_dir = tmp_path / "uploads"

    files = run_upload(make_request(body, content_type), upload_dir, config=UploadConfig.build(0, ["image/png"]))

    assert len(files) == 1
    stored = files[0]
    assert stored.original_file_name == "pic.png"
    assert re.fullmatch(r"[A-Za-z0-9]{25}\.png", stored.new_file_name)
    assert stored.size_bytes == len(png_bytes)
    assert (upload_dir / stored.new_file_name).read_bytes() == png_bytes


def test_png_rejected_by_jpeg_allow_list(tmp_path, multipart, make_request, png_bytes):
    body, content_type = multipart([("file", "pic.png", png_bytes, "image/jpeg")])
    upload_dir = tmp_path / "uploads"

    with pytest.raises(ValidationError) as excinfo:
        run_upload(make_request(body, content_type), upload_dir, config=UploadConfig.build(0, ["image/jpeg"]))

    assert excinfo.value.content_type == "image/png"
    assert "image/png" in str(excinfo.value)
    assert excinfo.value.uploaded == []
    assert list(upload_dir.iterdir()) == []


def test_client_declared_type_is_ignored(tmp_path, multipart, make_request):
    # Declared as an image, but the bytes are plain text
    body, content_type = multipart([("file", "fake.png", b"hello there", "image/png")])

    with pytest.raises(ValidationError) as excinfo:
        run_upload(make_request(body, content_type), tmp_path, config=UploadConfig.build(0, ["image/png"]))

    assert excinfo.value.content_type == "text/plain; charset=utf-8"


def test_empty_allow_list_accepts_every_type(tmp_path, multipart, make_request, png_bytes):
    body, content_type = multipart([
        ("docs", "notes.txt", b"some notes", None),
        ("docs", "blob.bin", b"\x00\x01\x02\x03", None),
        ("image", "pic.png", png_bytes, None),
    ])

    files = run_upload(make_request(body, content_type), tmp_path)

    assert [f.original_file_name for f in files] == ["notes.txt", "blob.bin", "pic.png"]
    assert [f.size_bytes for f in files] == [10, 4, len(png_bytes)]


def test_parts_are_ordered_by_field_then_arrival(tmp_path, multipart, make_request, png_bytes):
    body, content_type = multipart([
        ("zeta", "first.png", png_bytes, None),
        ("alpha", "second.png", png_bytes, None),
        ("mid", "third.png", png_bytes, None),
        ("alpha", "fourth.png", png_bytes, None),
    ])

    files = run_upload(make_request(body, content_type), tmp_path)

    assert [f.original_file_name for f in files] == ["second.png", "fourth.png", "third.png", "first.png"]


def test_rename_false_keeps_original_name(tmp_path, multipart, make_request, png_bytes):
    body, content_type = multipart([("file", "pic.png", png_bytes, None)])

    files = run_upload(make_request(body, content_type), tmp_path, rename=False)

    assert files == [UploadedFile(original_file_name="pic.png", new_file_name="pic.png", size_bytes=len(png_bytes))]
    assert (tmp_path / "pic.png").read_bytes() == png_bytes


def test_rename_false_strips_directory_components(tmp_path, multipart, make_request, png_bytes):
    upload_dir = tmp_path / "uploads"
    body, content_type = multipart([("file", "../../escape.png", png_bytes, None)])

    files = run_upload(make_request(body, content_type), upload_dir, rename=False)

    assert files[0].original_file_name == "../../escape.png"
    assert files[0].new_file_name == "escape.png"
    assert (upload_dir / "escape.png").exists()
    assert not (tmp_path.parent / "escape.png").exists()


def test_generated_name_keeps_only_last_extension(tmp_path, multipart, make_request):
    body, content_type = multipart([("file", "archive.tar.gz", b"\x1f\x8b\x08\x00data", None)])

    files = run_upload(make_request(body, content_type), tmp_path)

    assert re.fullmatch(r"[A-Za-z0-9]{25}\.gz", files[0].new_file_name)


def test_file_without_extension_gets_bare_name(tmp_path, multipart, make_request):
    body, content_type = multipart([("file", "README", b"read me", None)])

    files = run_upload(make_request(body, content_type), tmp_path)

    assert re.fullmatch(r"[A-Za-z0-9]{25}", files[0].new_file_name)


def test_large_file_size_is_counted_exactly(tmp_path, multipart, make_request, png_bytes):
    data = png_bytes + bytes(range(256)) * 8192
    body, content_type = multipart([("file", "big.png", data, None)])

    files = run_upload(make_request(body, content_type, chunk_size=65536), tmp_path)

    assert files[0].size_bytes == len(data)
    assert (tmp_path / files[0].new_file_name).stat().st_size == len(data)


def test_form_values_and_nameless_files_are_ignored(tmp_path, multipart, make_request, png_bytes):
    body, content_type = multipart([
        ("title", None, b"holiday", None),
        ("empty", "", b"", "application/octet-stream"),
        ("file", "pic.png", png_bytes, None),
    ])

    files = run_upload(make_request(body, content_type), tmp_path)

    assert [f.original_file_name for f in files] == ["pic.png"]


def test_validation_failure_stops_batch_and_reports_partial_results(tmp_path, multipart, make_request, png_bytes, gif_bytes):
    body, content_type = multipart([
        ("a", "ok.png", png_bytes, None),
        ("b", "bad.gif", gif_bytes, None),
        ("c", "never.png", png_bytes, None),
    ])
    config = UploadConfig.build(0, ["image/png"])

    with pytest.raises(ValidationError) as excinfo:
        run_upload(make_request(body, content_type), tmp_path, config=config)

    err = excinfo.value
    assert err.content_type == "image/gif"
    assert [f.original_file_name for f in err.uploaded] == ["ok.png"]
    # Files written before the failure are left in place
    assert sorted(p.name for p in tmp_path.iterdir()) == [err.uploaded[0].new_file_name]


def test_declared_length_over_limit_is_rejected_before_touching_disk(tmp_path, multipart, make_request, png_bytes):
    body, content_type = multipart([("file", "pic.png", png_bytes * 10, None)])
    upload_dir = tmp_path / "uploads"

    with pytest.raises(SizeLimitExceeded):
        run_upload(make_request(body, content_type), upload_dir, config=UploadConfig.build(100))

    assert not upload_dir.exists()


def test_streamed_body_over_limit_is_rejected(tmp_path, multipart, make_request, png_bytes):
    body, content_type = multipart([("file", "pic.png", png_bytes * 10, None)])
    upload_dir = tmp_path / "uploads"
    request = make_request(body, content_type, content_length=False, chunk_size=64)

    with pytest.raises(SizeLimitExceeded) as excinfo:
        run_upload(request, upload_dir, config=UploadConfig.build(100))

    assert excinfo.value.limit == 100
    assert not upload_dir.exists()


def test_non_multipart_body_is_a_parse_error(tmp_path, make_request):
    with pytest.raises(ParseError):
        run_upload(make_request(b'{"a": 1}', "application/json"), tmp_path)


def test_missing_boundary_is_a_parse_error(tmp_path, make_request):
    with pytest.raises(ParseError):
        run_upload(make_request(b"--x\r\n", "multipart/form-data"), tmp_path)


def test_upload_dir_blocked_by_file(tmp_path, multipart, make_request, png_bytes):
    blocker = tmp_path / "uploads"
    blocker.write_bytes(b"")
    body, content_type = multipart([("file", "pic.png", png_bytes, None)])

    with pytest.raises(UploadIOError):
        run_upload(make_request(body, content_type), blocker)


def test_write_failure_carries_partial_results(tmp_path, multipart, make_request, png_bytes):
    (tmp_path / "second.png").mkdir()
    body, content_type = multipart([
        ("a", "first.png", png_bytes, None),
        ("b", "second.png", png_bytes, None),
    ])

    with pytest.raises(UploadIOError) as excinfo:
        run_upload(make_request(body, content_type), tmp_path, rename=False)

    assert [f.new_file_name for f in excinfo.value.uploaded] == ["first.png"]
    assert (tmp_path / "first.png").read_bytes() == png_bytes


def test_entropy_failure_surfaces_randomness_unavailable(tmp_path, multipart, make_request, png_bytes, monkeypatch):
    def broken_choice(seq):
        raise OSError("entropy pool closed")

    monkeypatch.setattr(naming.secrets, "choice", broken_choice)
    body, content_type = multipart([("file", "pic.png", png_bytes, None)])

    with pytest.raises(RandomnessUnavailable):
        run_upload(make_request(body, content_type), tmp_path)

    assert list(tmp_path.iterdir()) == []


def test_upload_one_file_returns_first_in_order(tmp_path, multipart, make_request, png_bytes):
    body, content_type = multipart([
        ("b", "later.png", png_bytes, None),
        ("a", "earlier.png", png_bytes, None),
    ])

    stored = run_upload_one(make_request(body, content_type), tmp_path)

    assert stored.original_file_name == "earlier.png"


def test_upload_one_file_with_no_files(tmp_path, multipart, make_request):
    body, content_type = multipart([("title", None, b"no files here", None)])

    with pytest.raises(NoFilesSubmitted):
        run_upload_one(make_request(body, content_type), tmp_path)


def test_nul_byte_in_name_is_a_parse_error_with_partial_results(tmp_path, multipart, make_request, png_bytes):
    body, content_type = multipart([
        ("a", "ok.png", png_bytes, None),
        ("b", "a.p\x00ng", png_bytes, None),
    ])

    with pytest.raises(ParseError) as excinfo:
        run_upload(make_request(body, content_type), tmp_path)

    assert [f.original_file_name for f in excinfo.value.uploaded] == ["ok.png"]
    assert sorted(p.name for p in tmp_path.iterdir()) == [excinfo.value.uploaded[0].new_file_name]


def test_dot_file_keeps_its_name_as_extension(tmp_path, multipart, make_request):
    body, content_type = multipart([("file", ".bashrc", b"export PATH=$PATH\n", None)])

    files = run_upload(make_request(body, content_type), tmp_path)

    assert re.fullmatch(r"[A-Za-z0-9]{25}\.bashrc", files[0].new_file_name)


def test_rename_false_keeps_name_with_trailing_space(tmp_path, multipart, make_request, png_bytes):
    body, content_type = multipart([("file", "pic.png ", png_bytes, None)])

    files = run_upload(make_request(body, content_type), tmp_path, rename=False)

    assert files[0].new_file_name == files[0].original_file_name == "pic.png "
    assert (tmp_path / "pic.png ").read_bytes() == png_bytes
