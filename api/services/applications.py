"""
Application lifecycle engine.

Owns the Application aggregate. Every mutating operation runs the same
explicit sequence against a freshly loaded aggregate:

    load -> authorize -> validate -> mutate -> rescore -> versioned commit

followed, after the commit, by best-effort storage cleanup and
notifications. A stale commit reloads and replays the sequence, so a
transition is always re-validated against the state it is applied to.
"""

import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Collection, Mapping
from uuid import UUID

from api.schemas.applications import (
    AttachmentBatch,
    ScheduleInterviewRequest,
    StatusChangeRequest,
    SubmitApplicationRequest,
)
from api.services.documents import (
    SkippedDocument,
    StorageJanitor,
    partition_documents,
    require_slot,
)
from api.services.scoring import analyze_cover_letter, calculate_score, clamp_score
from api.services.transitions import StatusTransitionValidator
from core.domain import (
    Actor,
    Application,
    ApplicationStatus,
    Attendee,
    Interview,
    InterviewType,
    Provenance,
    StatusChange,
)
from core.errors import (
    ForbiddenError,
    JobInactiveError,
    NotFoundError,
    StaleWriteError,
    ValidationFailedError,
)
from core.interfaces import (
    ApplicationStore,
    AttachmentStorage,
    AuthorizationPolicy,
    CandidateDirectory,
    CleanupScheduler,
    JobDirectory,
    Notifier,
)
from core.policies import Permission
from core.rules import (
    DEFAULT_INTERVIEW_TEMPLATE,
    DEFAULT_SCORE_WEIGHTS,
    INTERVIEW_TEMPLATES,
    MAX_ATTENDEES,
    MIN_ATTENDEES,
    STATUS_TRANSITIONS,
    ScoreWeights,
)
from core.utils.datetime import ensure_utc, is_aware, is_future, now
from core.utils.deadline import Deadline

logger = logging.getLogger(__name__)

Mutation = Callable[[Application], Awaitable[bool]]


@dataclass(frozen=True)
class Submission:
    application: Application
    next_steps: list[str]


@dataclass(frozen=True)
class WithdrawalSummary:
    application_id: UUID
    job_id: UUID
    new_status: ApplicationStatus


@dataclass(frozen=True)
class AttachResult:
    """Outcome of an attach; ``skipped`` lists items left out of the batch."""

    application: Application
    accepted: int
    skipped: list[SkippedDocument] = field(default_factory=list)


class ApplicationLifecycleEngine:
    """Submission, status workflow, interviews, scoring and attachments."""

    def __init__(
        self,
        store: ApplicationStore,
        jobs: JobDirectory,
        candidates: CandidateDirectory,
        storage: AttachmentStorage,
        policy: AuthorizationPolicy,
        notifier: Notifier,
        cleanup_scheduler: CleanupScheduler,
        transitions: Mapping[ApplicationStatus, frozenset[ApplicationStatus]] = STATUS_TRANSITIONS,
        weights: ScoreWeights = DEFAULT_SCORE_WEIGHTS,
        templates: Mapping[InterviewType, str] = INTERVIEW_TEMPLATES,
        clock: Callable = now,
        default_timeout: float | None = None,
        max_write_attempts: int = 3,
    ):
        self.store = store
        self.jobs = jobs
        self.candidates = candidates
        self.storage = storage
        self.policy = policy
        self.notifier = notifier
        self.validator = StatusTransitionValidator(transitions)
        self.weights = weights
        self.templates = templates
        self.clock = clock
        self.default_timeout = default_timeout
        self.max_write_attempts = max(1, max_write_attempts)
        self.janitor = StorageJanitor(storage, cleanup_scheduler)

    # ------------------------------------------------------------------
    # Steps shared by every operation
    # ------------------------------------------------------------------

    def _deadline(self, timeout: float | None) -> Deadline:
        return Deadline(self.default_timeout if timeout is None else timeout)

    async def _load(self, application_id: UUID, deadline: Deadline, include_deleted: bool = False) -> Application:
        application = await deadline.run(self.store.get(application_id, include_deleted), "load")
        if application is None:
            raise NotFoundError("Application", application_id)
        return application

    def _authorize(self, actor: Actor | None, action: Permission, application: Application) -> None:
        if actor is None:
            return
        if not self.policy.can_perform(actor, action, application):
            raise ForbiddenError(action=action.value)

    async def _resume_present(self, application: Application, deadline: Deadline) -> bool:
        if application.resume_url:
            return True
        candidate = await deadline.run(self.candidates.get(application.candidate_id), "candidate_lookup")
        return bool(candidate and candidate.resume_present)

    def _rescore(self, application: Application, resume_present: bool) -> bool:
        """Recompute the score in place; True if anything changed."""
        details = calculate_score(
            resume_present=resume_present,
            cover_letter_length=len(application.cover_letter or ""),
            status=application.status,
            interview_count=len(application.interviews),
            weights=self.weights,
        )
        score = clamp_score(details, self.weights)
        changed = details != application.scoring_details or score != application.score
        application.scoring_details = details
        application.score = score
        return changed

    async def _apply(self, application_id: UUID, deadline: Deadline, mutate: Mutation) -> Application:
        """
        Load, mutate and commit with optimistic concurrency.

        ``mutate`` returns False when there is nothing to write, in which
        case the loaded aggregate is returned untouched.

        Raises:
            StaleWriteError: If every attempt lost a concurrent write
        """
        attempt = 0
        while True:
            attempt += 1
            application = await self._load(application_id, deadline)
            if not await mutate(application):
                return application

            # Nothing has been written yet; past this point the write is not cancelled
            deadline.ensure_time_left("commit")
            application.updated_at = self.clock()
            try:
                return await self.store.save(application)
            except StaleWriteError:
                if attempt == self.max_write_attempts:
                    logger.warning(
                        f"Giving up on application {application_id} after {attempt} stale writes"
                    )
                    raise
                logger.info(f"Stale write on application {application_id}, retrying (attempt {attempt})")

    def _notify(self, recipient_id: UUID, message: str) -> None:
        try:
            self.notifier.notify(recipient_id, message)
        except Exception as exc:
            logger.warning(f"Notification to {recipient_id} failed: {exc}", exc_info=True)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def submit(
        self,
        job_id: UUID,
        request: SubmitApplicationRequest,
        actor: Actor,
        provenance: Provenance | None = None,
        timeout: float | None = None,
    ) -> Submission:
        """
        Create an application for a job.

        Uniqueness of (job, candidate) is left to the store's constraint;
        there is deliberately no read-before-insert.

        Args:
            job_id: Target job
            request: Candidate input
            actor: Submitting user
            provenance: Request ip and user agent
            timeout: Seconds before the operation gives up

        Returns:
            The stored application and suggested next steps

        Raises:
            NotFoundError: Job or candidate missing
            JobInactiveError: Job closed to applications
            DuplicateApplicationError: Candidate already applied
        """
        deadline = self._deadline(timeout)
        provenance = provenance or Provenance()

        job = await deadline.run(self.jobs.get(job_id), "job_lookup")
        if job is None:
            raise NotFoundError("Job", job_id)
        if not job.is_active:
            raise JobInactiveError(job_id)

        candidate = await deadline.run(self.candidates.get(request.candidate_id), "candidate_lookup")
        if candidate is None:
            raise NotFoundError("Candidate", request.candidate_id)

        submitted_at = self.clock()
        application = Application(
            job_id=job.id,
            candidate_id=candidate.id,
            company_id=job.company_id,
            created_at=submitted_at,
            updated_at=submitted_at,
            cover_letter=request.cover_letter,
            status=ApplicationStatus.SUBMITTED,
            status_history=[
                StatusChange(
                    status=ApplicationStatus.SUBMITTED,
                    changed_at=submitted_at,
                    changed_by=candidate.id,
                    notes="Application submitted",
                )
            ],
            metadata={
                "ip_address": provenance.ip_address,
                "user_agent": provenance.user_agent,
                "submitted_at": submitted_at.isoformat(),
                "analysis": analyze_cover_letter(request.cover_letter),
            },
        )
        self._authorize(actor, Permission.APPLICATION_SUBMIT, application)
        self._rescore(application, candidate.resume_present)

        deadline.ensure_time_left("commit")
        saved = await self.store.add(application)
        logger.info(
            f"Application {saved.id} submitted for job {job.id} by candidate {candidate.id} "
            f"(score {saved.score})"
        )

        self._notify(job.company_id, f"New application received for {job.title}")

        next_steps = [] if candidate.resume_present else ["Upload your resume"]
        next_steps.append("Complete your profile")
        return Submission(application=saved, next_steps=next_steps)

    async def get(
        self,
        application_id: UUID,
        actor: Actor | None = None,
        include_deleted: bool = False,
        timeout: float | None = None,
        permission: Permission = Permission.APPLICATION_READ,
    ) -> Application:
        application = await self._load(application_id, self._deadline(timeout), include_deleted)
        self._authorize(actor, permission, application)
        return application

    async def change_status(
        self,
        application_id: UUID,
        request: StatusChangeRequest,
        actor: Actor,
        timeout: float | None = None,
    ) -> Application:
        """
        Move an application along the status graph.

        Requesting the current status of a live application is an idempotent
        no-op: nothing is written and no history entry is appended.

        Raises:
            NotFoundError: Unknown application
            ForbiddenError: Actor may not change this application's status
            InvalidTransitionError: Edge not in the transition table
            StaleWriteError: Lost every optimistic concurrency retry
        """
        deadline = self._deadline(timeout)
        changed = False

        async def mutate(application: Application) -> bool:
            nonlocal changed
            self._authorize(actor, Permission.APPLICATION_UPDATE_STATUS, application)
            if self.validator.is_noop(application.status, request.status):
                changed = False
                return False

            self.validator.check(application.status, request.status)
            entry = self.validator.entry(
                previous=application.status,
                status=request.status,
                changed_by=actor.id,
                changed_at=self.clock(),
                notes=request.notes,
            )
            application.status_history.append(entry)
            application.status = request.status
            self._rescore(application, await self._resume_present(application, deadline))
            changed = True
            return True

        application = await self._apply(application_id, deadline, mutate)
        if changed:
            logger.info(
                f"Application {application_id} moved to {request.status.value} by {actor.id}"
            )
            self._notify(
                application.candidate_id,
                f"Your application status changed to {request.status.value}",
            )
        return application

    async def withdraw(
        self,
        application_id: UUID,
        actor: Actor,
        reason: str | None = None,
        timeout: float | None = None,
    ) -> WithdrawalSummary:
        """
        Withdraw an application on behalf of its candidate.

        Unlike ``change_status`` there is no same-state short-circuit:
        withdrawing an already withdrawn application is an invalid
        transition.

        Raises:
            NotFoundError: Unknown application
            ForbiddenError: Actor is not the owning candidate
            InvalidTransitionError: Application already closed
        """
        deadline = self._deadline(timeout)

        async def mutate(application: Application) -> bool:
            self._authorize(actor, Permission.APPLICATION_WITHDRAW, application)
            self.validator.check(application.status, ApplicationStatus.WITHDRAWN)
            application.status_history.append(self.validator.entry(
                previous=application.status,
                status=ApplicationStatus.WITHDRAWN,
                changed_by=actor.id,
                changed_at=self.clock(),
                notes=reason or "Withdrawn by candidate",
            ))
            application.status = ApplicationStatus.WITHDRAWN
            self._rescore(application, await self._resume_present(application, deadline))
            return True

        application = await self._apply(application_id, deadline, mutate)
        logger.info(f"Application {application_id} withdrawn by {actor.id}")
        self._notify(application.company_id, f"A candidate withdrew their application {application.id}")

        return WithdrawalSummary(
            application_id=application.id,
            job_id=application.job_id,
            new_status=application.status,
        )

    def _build_interview(self, request: ScheduleInterviewRequest) -> Interview:
        scheduled_at = request.scheduled_at
        if not is_aware(scheduled_at):
            raise ValidationFailedError(
                "scheduled_at must include a timezone offset", field="scheduled_at"
            )
        if not is_future(scheduled_at, self.clock()):
            raise ValidationFailedError(
                "Interview must be scheduled in the future", field="scheduled_at"
            )

        count = len(request.attendees)
        if count < MIN_ATTENDEES or count > MAX_ATTENDEES:
            raise ValidationFailedError(
                f"Between {MIN_ATTENDEES} and {MAX_ATTENDEES} attendees are required",
                field="attendees",
            )
        user_ids = [attendee.user_id for attendee in request.attendees]
        if len(set(user_ids)) != len(user_ids):
            raise ValidationFailedError("Duplicate attendees are not allowed", field="attendees")

        return Interview(
            scheduled_at=ensure_utc(scheduled_at),
            interview_type=request.interview_type,
            attendees=[Attendee(user_id=a.user_id, role=a.role) for a in request.attendees],
            location=request.location,
            feedback=request.feedback,
            result=request.result,
            template=self.templates.get(request.interview_type, DEFAULT_INTERVIEW_TEMPLATE),
        )

    async def schedule_interview(
        self,
        application_id: UUID,
        request: ScheduleInterviewRequest,
        actor: Actor,
        timeout: float | None = None,
    ) -> Interview:
        """
        Append an interview. The application's status is left as it is.

        Raises:
            ValidationFailedError: Past or naive time, bad attendee list, or
                a closed application
            NotFoundError: Unknown application
        """
        deadline = self._deadline(timeout)
        interview = self._build_interview(request)

        async def mutate(application: Application) -> bool:
            self._authorize(actor, Permission.INTERVIEW_SCHEDULE, application)
            if self.validator.is_terminal(application.status):
                raise ValidationFailedError(
                    f"Cannot schedule an interview for a {application.status.value} application",
                    field="status",
                )
            application.interviews.append(interview)
            self._rescore(application, await self._resume_present(application, deadline))
            return True

        application = await self._apply(application_id, deadline, mutate)
        logger.info(
            f"Interview {interview.id} ({interview.interview_type.value}) scheduled for "
            f"application {application_id} at {interview.scheduled_at.isoformat()}"
        )
        self._notify(
            application.candidate_id,
            f"Interview scheduled for {interview.scheduled_at.isoformat()}",
        )
        return interview

    async def recalculate_score(
        self,
        application_id: UUID,
        actor: Actor | None = None,
        timeout: float | None = None,
    ) -> Application:
        """Recompute the score; writes only when the breakdown changed."""
        deadline = self._deadline(timeout)

        async def mutate(application: Application) -> bool:
            self._authorize(actor, Permission.APPLICATION_RESCORE, application)
            return self._rescore(application, await self._resume_present(application, deadline))

        return await self._apply(application_id, deadline, mutate)

    async def attach(
        self,
        application_id: UUID,
        files: AttachmentBatch,
        actor: Actor | None = None,
        timeout: float | None = None,
        owned: Collection[str] = (),
    ) -> AttachResult:
        """
        Reference stored files from the application.

        Resume and cover letter replace any previous object in their slot.
        Document items missing a required field are skipped and reported.
        Objects replaced in a slot are deleted after the commit.

        Args:
            owned: URLs of objects stored for this call alone. Only these
                are ever deleted on the caller's behalf: skipped ones after
                the commit, offered ones if the commit fails. Objects the
                aggregate still references are never deleted.

        Raises:
            ValidationFailedError: Nothing valid to attach, or a malformed
                resume or cover letter
            NotFoundError: Unknown application
        """
        deadline = self._deadline(timeout)
        owned = set(owned)
        if files.is_empty:
            raise ValidationFailedError("No valid files to store")
        if files.resume is not None:
            require_slot(files.resume, "resume")
        if files.cover_letter is not None:
            require_slot(files.cover_letter, "cover_letter")

        documents, skipped = partition_documents(files.documents, self.clock())
        orphaned = [item.url for item in skipped if item.url in owned]
        if files.resume is None and files.cover_letter is None and not documents:
            await self.janitor.cleanup(orphaned, deadline)
            raise ValidationFailedError("No valid files to store")

        offered = [doc.url for doc in documents]
        offered += [ref.url for ref in (files.resume, files.cover_letter) if ref is not None]
        replaced: list[str] = []
        referenced: set[str] = set()

        async def mutate(application: Application) -> bool:
            replaced.clear()
            referenced.clear()
            referenced.update(application.storage_urls())
            self._authorize(actor, Permission.APPLICATION_ATTACH, application)
            if files.resume is not None:
                if application.resume_url and application.resume_url != files.resume.url:
                    replaced.append(application.resume_url)
                application.resume_url = files.resume.url
            if files.cover_letter is not None:
                if application.cover_letter_url and application.cover_letter_url != files.cover_letter.url:
                    replaced.append(application.cover_letter_url)
                application.cover_letter_url = files.cover_letter.url
            application.documents = application.documents + documents
            self._rescore(application, await self._resume_present(application, deadline))
            return True

        try:
            application = await self._apply(application_id, deadline, mutate)
        except Exception:
            # Objects stored for this call that the aggregate never took on
            await self.janitor.cleanup(
                [url for url in offered + orphaned if url in owned and url not in referenced]
            )
            raise

        logger.info(
            f"Attached {len(offered)} file(s) to application {application_id}, "
            f"skipped {len(skipped)}"
        )
        still_referenced = set(application.storage_urls())
        await self.janitor.cleanup(
            [url for url in replaced + orphaned if url not in still_referenced], deadline
        )
        return AttachResult(application=application, accepted=len(offered), skipped=skipped)

    async def remove_all(
        self,
        application_id: UUID,
        actor: Actor | None = None,
        timeout: float | None = None,
    ) -> Application:
        """
        Drop the cover letter file and every document.

        References are cleared and committed first, then the objects are
        deleted. Deletion failures are logged and deferred, never raised.
        With nothing referenced this is a no-op that writes nothing.
        """
        deadline = self._deadline(timeout)
        collected: list[str] = []

        async def mutate(application: Application) -> bool:
            self._authorize(actor, Permission.APPLICATION_ATTACH, application)
            urls = [doc.url for doc in application.documents]
            if application.cover_letter_url:
                urls.append(application.cover_letter_url)
            collected[:] = urls
            if not urls:
                return False

            application.documents = []
            application.cover_letter_url = None
            self._rescore(application, await self._resume_present(application, deadline))
            return True

        application = await self._apply(application_id, deadline, mutate)
        if collected:
            logger.info(f"Removed {len(collected)} attachment(s) from application {application_id}")
            await self.janitor.cleanup(collected, deadline)
        return application

    async def archive(
        self,
        application_id: UUID,
        actor: Actor,
        timeout: float | None = None,
    ) -> Application:
        """Soft delete: hide the application from reads and further changes."""
        deadline = self._deadline(timeout)

        async def mutate(application: Application) -> bool:
            self._authorize(actor, Permission.APPLICATION_ARCHIVE, application)
            application.is_archived = True
            application.deleted_at = self.clock()
            return True

        application = await self._apply(application_id, deadline, mutate)
        logger.info(f"Application {application_id} archived by {actor.id}")
        return application

    async def delete(
        self,
        application_id: UUID,
        actor: Actor,
        timeout: float | None = None,
    ) -> None:
        """Administrative hard delete, including every stored attachment."""
        deadline = self._deadline(timeout)
        application = await self._load(application_id, deadline, include_deleted=True)
        self._authorize(actor, Permission.APPLICATION_DELETE, application)

        deadline.ensure_time_left("commit")
        if not await self.store.delete(application_id):
            raise NotFoundError("Application", application_id)

        logger.info(f"Application {application_id} deleted by {actor.id}")
        await self.janitor.cleanup(application.storage_urls(), deadline)
