"""
Tests for attaching, replacing and removing application files.
"""

import uuid

import pytest

from api.schemas.applications import AttachmentBatch, FileReference
from api.services.documents import (
    StorageJanitor,
    UploadedFile,
    check_upload,
    partition_documents,
    store_uploads,
)
from core.domain import Document
from core.errors import ForbiddenError, StaleWriteError, StorageFailureError, ValidationFailedError
from core.utils.deadline import Deadline
from fakes import FIXED_NOW, FakeStorage, Harness, RecordingScheduler

PDF = "application/pdf"
DOCX = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
MB = 1024 * 1024


def ref(name="portfolio.pdf", url="mem://portfolio", type=PDF, size=100) -> FileReference:
    return FileReference(name=name, url=url, type=type, size=size)


class TestPartitionDocuments:
    def test_valid_items_accepted_in_order(self):
        accepted, skipped = partition_documents([ref(url="mem://a"), ref(url="mem://b")], FIXED_NOW)

        assert [doc.url for doc in accepted] == ["mem://a", "mem://b"]
        assert all(doc.uploaded_at == FIXED_NOW for doc in accepted)
        assert skipped == []

    def test_malformed_items_reported(self):
        items = [ref(), FileReference(name="x"), ref(url="mem://neg", size=-1)]

        accepted, skipped = partition_documents(items, FIXED_NOW)

        assert len(accepted) == 1
        assert [(s.index, s.reason) for s in skipped] == [
            (1, "missing url, type, size"),
            (2, "invalid size"),
        ]
        assert skipped[1].url == "mem://neg"

    def test_blank_strings_count_as_missing(self):
        _, skipped = partition_documents([ref(name="   ")], FIXED_NOW)
        assert skipped[0].reason == "missing name"


class TestAttach:
    @pytest.mark.asyncio
    async def test_only_malformed_documents_rejected(self, harness):
        """A batch whose only item lacks a url stores nothing and changes nothing."""
        app = harness.application()

        with pytest.raises(ValidationFailedError, match="No valid files to store"):
            await harness.engine.attach(app.id, AttachmentBatch(documents=[FileReference(name="x")]))

        assert harness.store.rows[app.id].documents == []
        assert harness.store.save_calls == 0

    @pytest.mark.asyncio
    async def test_empty_batch_rejected(self, harness):
        app = harness.application()

        with pytest.raises(ValidationFailedError):
            await harness.engine.attach(app.id, AttachmentBatch())

    @pytest.mark.asyncio
    async def test_malformed_documents_skipped_and_cleaned(self, harness):
        app = harness.application()
        good = harness.storage.put("mem://good")
        orphan = harness.storage.put("mem://orphan")
        batch = AttachmentBatch(documents=[ref(url=good), ref(url=orphan, type=None)])

        result = await harness.engine.attach(app.id, batch, harness.candidate(), owned=batch.urls)

        assert result.accepted == 1
        assert [s.index for s in result.skipped] == [1]
        assert [doc.url for doc in harness.store.rows[app.id].documents] == [good]
        assert orphan not in harness.storage.objects
        assert good in harness.storage.objects

    @pytest.mark.asyncio
    async def test_documents_appended(self, harness):
        first = harness.storage.put("mem://first")
        app = harness.application()
        await harness.engine.attach(app.id, AttachmentBatch(documents=[ref(url=first)]))

        await harness.engine.attach(app.id, AttachmentBatch(documents=[ref(url="mem://second")]))

        assert [d.url for d in harness.store.rows[app.id].documents] == [first, "mem://second"]
        assert first in harness.storage.objects

    @pytest.mark.asyncio
    async def test_resume_replacement_deletes_previous_object(self, harness):
        old = harness.storage.put("mem://resume-v1")
        new = harness.storage.put("mem://resume-v2")
        app = harness.application(resume_url=old)

        result = await harness.engine.attach(app.id, AttachmentBatch(resume=ref(name="cv.pdf", url=new)))

        assert result.application.resume_url == new
        assert old not in harness.storage.objects
        assert new in harness.storage.objects

    @pytest.mark.asyncio
    async def test_cover_letter_replacement_deletes_previous_object(self, harness):
        old = harness.storage.put("mem://letter-v1")
        app = harness.application(cover_letter_url=old)

        await harness.engine.attach(app.id, AttachmentBatch(cover_letter=ref(url="mem://letter-v2")))

        assert harness.store.rows[app.id].cover_letter_url == "mem://letter-v2"
        assert old in harness.storage.deleted

    @pytest.mark.asyncio
    async def test_resume_upload_raises_score(self, harness_without_resume):
        h = harness_without_resume
        app = h.application(score=50)

        result = await h.engine.attach(app.id, AttachmentBatch(resume=ref(url="mem://cv")))

        assert result.application.scoring_details.resume_score == 10
        assert result.application.score == 60

    @pytest.mark.asyncio
    async def test_malformed_resume_slot_rejected(self, harness):
        app = harness.application()

        with pytest.raises(ValidationFailedError, match="Invalid resume file"):
            await harness.engine.attach(app.id, AttachmentBatch(resume=FileReference(name="cv.pdf")))

    @pytest.mark.asyncio
    async def test_failed_commit_deletes_offered_objects(self):
        h = Harness(max_write_attempts=1)
        app = h.application()
        offered = h.storage.put("mem://offered")

        async def stale(application):
            raise StaleWriteError(application.id, application.version)

        h.store.save = stale
        with pytest.raises(StaleWriteError):
            await h.engine.attach(app.id, AttachmentBatch(documents=[ref(url=offered)]), owned=[offered])

        assert offered not in h.storage.objects

    @pytest.mark.asyncio
    async def test_other_candidate_cannot_attach(self, harness):
        app = harness.application(candidate_id=harness.candidate_id)
        other = Harness()

        with pytest.raises(ForbiddenError):
            await harness.engine.attach(app.id, AttachmentBatch(documents=[ref()]), other.candidate())

    @pytest.mark.asyncio
    async def test_forbidden_attach_leaves_named_objects_alone(self, harness):
        victim_url = harness.storage.put("mem://victim/cv.pdf")
        harness.application(job_id=uuid.uuid4(), documents=[Document("cv.pdf", victim_url, PDF, 100, FIXED_NOW)])
        target = harness.application()
        outsider = Harness().candidate()

        with pytest.raises(ValidationFailedError):
            await harness.engine.attach(
                target.id, AttachmentBatch(documents=[FileReference(name="x", url=victim_url)]), outsider
            )
        with pytest.raises(ForbiddenError):
            await harness.engine.attach(target.id, AttachmentBatch(documents=[ref(url=victim_url)]), outsider)

        assert victim_url in harness.storage.objects
        assert harness.storage.deleted == []

    @pytest.mark.asyncio
    async def test_forbidden_attach_keeps_current_resume(self, harness):
        current = harness.storage.put("mem://resume/current.pdf")
        app = harness.application(resume_url=current)

        with pytest.raises(ForbiddenError):
            await harness.engine.attach(
                app.id, AttachmentBatch(resume=ref(name="cv.pdf", url=current)), Harness().candidate()
            )

        assert harness.store.rows[app.id].resume_url == current
        assert current in harness.storage.objects

    @pytest.mark.asyncio
    async def test_only_malformed_items_keep_referenced_objects(self, harness):
        kept = harness.storage.put("mem://kept")
        app = harness.application(documents=[Document("kept.pdf", kept, PDF, 10, FIXED_NOW)])

        with pytest.raises(ValidationFailedError, match="No valid files to store"):
            await harness.engine.attach(
                app.id, AttachmentBatch(documents=[FileReference(name="x", url=kept)]), harness.candidate()
            )

        assert kept in harness.storage.objects
        assert [d.url for d in harness.store.rows[app.id].documents] == [kept]

    @pytest.mark.asyncio
    async def test_skipped_items_not_stored_by_caller_are_kept(self, harness):
        app = harness.application()
        foreign = harness.storage.put("mem://elsewhere")
        batch = AttachmentBatch(documents=[ref(url="mem://new"), ref(url=foreign, size=None)])

        result = await harness.engine.attach(app.id, batch, harness.candidate())

        assert [s.url for s in result.skipped] == [foreign]
        assert foreign in harness.storage.objects

    @pytest.mark.asyncio
    async def test_failed_retry_of_same_resume_keeps_it(self):
        h = Harness(max_write_attempts=1)
        current = h.storage.put("mem://resume/current.pdf")
        app = h.application(resume_url=current)

        async def stale(application):
            raise StaleWriteError(application.id, application.version)

        h.store.save = stale
        with pytest.raises(StaleWriteError):
            await h.engine.attach(app.id, AttachmentBatch(resume=ref(name="cv.pdf", url=current)), owned=[current])

        assert current in h.storage.objects


class TestRemoveAll:
    @pytest.mark.asyncio
    async def test_clears_references_then_deletes_objects(self, harness):
        doc = harness.storage.put("mem://doc")
        letter = harness.storage.put("mem://letter")
        resume = harness.storage.put("mem://resume")
        app = harness.application(cover_letter_url=letter, resume_url=resume)
        await harness.engine.attach(app.id, AttachmentBatch(documents=[ref(url=doc)]))

        result = await harness.engine.remove_all(app.id, harness.candidate())

        assert result.documents == []
        assert result.cover_letter_url is None
        assert result.resume_url == resume
        assert doc not in harness.storage.objects
        assert letter not in harness.storage.objects
        assert resume in harness.storage.objects

    @pytest.mark.asyncio
    async def test_second_removal_is_noop(self, harness):
        app = harness.application(cover_letter_url=harness.storage.put("mem://letter"))
        await harness.engine.remove_all(app.id)
        saves = harness.store.save_calls
        version = harness.store.rows[app.id].version

        result = await harness.engine.remove_all(app.id)

        assert harness.store.save_calls == saves
        assert result.version == version
        assert result.documents == []

    @pytest.mark.asyncio
    async def test_cleanup_failure_is_deferred_not_raised(self, harness):
        letter = harness.storage.put("mem://letter")
        harness.storage.fail_urls.add(letter)
        app = harness.application(cover_letter_url=letter)

        result = await harness.engine.remove_all(app.id)

        assert result.cover_letter_url is None
        assert harness.store.rows[app.id].cover_letter_url is None
        assert harness.scheduler.scheduled == [[letter]]


class TestStorageJanitor:
    @pytest.mark.asyncio
    async def test_missing_objects_count_as_deleted(self):
        storage = FakeStorage()
        scheduler = RecordingScheduler()

        failed = await StorageJanitor(storage, scheduler).cleanup(["mem://gone"])

        assert failed == []
        assert scheduler.scheduled == []

    @pytest.mark.asyncio
    async def test_duplicates_and_blanks_ignored(self):
        storage = FakeStorage()
        storage.put("mem://a")

        await StorageJanitor(storage, RecordingScheduler()).cleanup(["mem://a", "", "mem://a"])

        assert storage.deleted == ["mem://a"]

    @pytest.mark.asyncio
    async def test_expired_deadline_defers_everything(self):
        storage = FakeStorage()
        scheduler = RecordingScheduler()

        failed = await StorageJanitor(storage, scheduler).cleanup(["mem://a", "mem://b"], Deadline(0))

        assert failed == ["mem://a", "mem://b"]
        assert scheduler.scheduled == [["mem://a", "mem://b"]]
        assert storage.deleted == []


class TestStoreUploads:
    def test_check_upload(self):
        assert check_upload(UploadedFile("a.pdf", PDF, b"x"), MB) is None
        assert check_upload(UploadedFile("a.png", "image/png", b"x"), MB).startswith("unsupported")
        assert check_upload(UploadedFile("a.pdf", PDF, b""), MB) == "empty file"
        assert check_upload(UploadedFile("a.pdf", PDF, b"x" * (MB + 1)), MB) == "file exceeds 1MB"

    @pytest.mark.asyncio
    async def test_builds_batch_and_rejects_bad_documents(self):
        storage = FakeStorage()
        resume = UploadedFile("cv.pdf", PDF, b"resume")
        documents = [UploadedFile("ref.docx", DOCX, b"ref"), UploadedFile("photo.png", "image/png", b"img")]

        batch, rejected = await store_uploads(storage, resume, None, documents, MB)

        assert batch.resume.name == "cv.pdf"
        assert batch.resume.size == 6
        assert [d.name for d in batch.documents] == ["ref.docx"]
        assert [(r.index, r.name) for r in rejected] == [(1, "photo.png")]
        assert len(storage.objects) == 2

    @pytest.mark.asyncio
    async def test_invalid_resume_raises(self):
        storage = FakeStorage()

        with pytest.raises(ValidationFailedError, match="Invalid resume file"):
            await store_uploads(storage, UploadedFile("cv.exe", "application/x-msdownload", b"x"), None, [], MB)
        assert storage.objects == {}

    @pytest.mark.asyncio
    async def test_nothing_valid_raises(self):
        with pytest.raises(ValidationFailedError, match="No valid files to store"):
            await store_uploads(FakeStorage(), None, None, [UploadedFile("a.txt", "text/plain", b"x")], MB)

    @pytest.mark.asyncio
    async def test_store_failure_removes_already_stored(self):
        storage = FakeStorage()
        storage.fail_store_names.add("broken.pdf")
        documents = [UploadedFile("ok.pdf", PDF, b"ok"), UploadedFile("broken.pdf", PDF, b"no")]

        with pytest.raises(StorageFailureError):
            await store_uploads(storage, None, None, documents, MB)

        assert storage.objects == {}
