import io

import pytest

from fundflow.core.errors import UploadError
from fundflow.notifications import Notifier
from fundflow.realtime import SubscriptionHub
from fundflow.services.attachments import MAX_FILE_SIZE, IncomingFile, screen_files, upload_attachments
from fundflow.storage import LocalBlobStorage, StorageError, attachment_path, sanitize_filename


class RecordingNotifier(Notifier):
    def __init__(self):
        super().__init__(SubscriptionHub())
        self.events = []

    def success(self, user_id, message):
        self.events.append(("success", message))

    def error(self, user_id, message):
        self.events.append(("error", message))

    def progress(self, user_id, file_name, fraction):
        self.events.append(("progress", file_name, fraction))


class BrokenStorage:
    def __init__(self, fail_on):
        self.fail_on = fail_on
        self.uploaded = []

    def upload(self, stream, path, on_progress=None, size=None):
        if path.endswith(self.fail_on):
            raise StorageError("disk full")
        self.uploaded.append(path)
        return f"/files/{path}"

    def open(self, path):
        raise FileNotFoundError(path)


def _file(name, data=b"abc", size=None):
    return IncomingFile(name=name, content_type="application/pdf", size=len(data) if size is None else size, stream=io.BytesIO(data))


def test_sanitize_filename():
    assert sanitize_filename("счет №1 (copy).pdf") == "______1__copy_.pdf"
    assert sanitize_filename("report-2024.v2.pdf") == "report-2024.v2.pdf"
    assert sanitize_filename("a b&c.png") == "a_b_c.png"


def test_attachment_path_shape():
    assert attachment_path(7, "my file.pdf", 1700000000123) == "transactions/7/1700000000123-my_file.pdf"


def test_local_storage_upload_reports_fraction_progress(tmp_path):
    storage = LocalBlobStorage(tmp_path, "/files", chunk_bytes=4)
    seen = []
    url = storage.upload(io.BytesIO(b"0123456789"), "transactions/1/1-a.txt", on_progress=seen.append, size=10)

    assert url == "/files/transactions/1/1-a.txt"
    assert (tmp_path / "transactions/1/1-a.txt").read_bytes() == b"0123456789"
    assert seen == [0.4, 0.8, 1.0]
    assert storage.open("transactions/1/1-a.txt").is_file()


def test_local_storage_refuses_paths_outside_root(tmp_path):
    storage = LocalBlobStorage(tmp_path / "root", "/files")
    with pytest.raises(StorageError):
        storage.upload(io.BytesIO(b"x"), "../escape.txt")


def test_oversized_files_are_skipped_and_rest_kept():
    notifier = RecordingNotifier()
    big = _file("big.pdf", b"", size=MAX_FILE_SIZE + 1)
    ok1 = _file("a.pdf")
    ok2 = _file("b.pdf", size=MAX_FILE_SIZE)

    accepted, rejected = screen_files([ok1, big, ok2], notifier, "u1")

    assert [f.name for f in accepted] == ["a.pdf", "b.pdf"]
    assert rejected == ["big.pdf"]
    assert notifier.events == [("error", "Файл big.pdf слишком большой (макс. 10MB)")]


def test_upload_attachments_builds_descriptors(tmp_path):
    storage = LocalBlobStorage(tmp_path, "/files")
    notifier = RecordingNotifier()

    out = upload_attachments(storage, 3, [_file("a b.pdf", b"hello")], notifier, "u1", clock=lambda: 42)

    assert len(out) == 1
    att = out[0]
    assert att["name"] == "a b.pdf"
    assert att["path"] == "transactions/3/42-a_b.pdf"
    assert att["url"] == "/files/transactions/3/42-a_b.pdf"
    assert att["size"] == 5
    assert att["type"] == "application/pdf"
    assert ("progress", "a b.pdf", 0.0) in notifier.events
    assert ("progress", "a b.pdf", 1.0) in notifier.events
    assert notifier.events[-1] == ("success", "Файл a b.pdf успешно загружен")


def test_upload_failure_aborts_remaining_files():
    storage = BrokenStorage(fail_on="b.pdf")
    notifier = RecordingNotifier()

    with pytest.raises(UploadError):
        upload_attachments(storage, 1, [_file("a.pdf"), _file("b.pdf"), _file("c.pdf")], notifier, "u1")

    # a.pdf ficou (sem rollback), c.pdf nunca foi tentado
    assert len(storage.uploaded) == 1
    assert storage.uploaded[0].endswith("a.pdf")
    assert ("error", "Ошибка при загрузке файла b.pdf") in notifier.events
