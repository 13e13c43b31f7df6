"""
Tests for the ProjectLifecycleService state machine.
"""
import asyncio

import pytest

from blue_carbon.domains.certificates import Certificate
from blue_carbon.domains.config import LifecyclePolicy
from blue_carbon.domains.projects import Actor, ActorRole, ProjectStatus
from blue_carbon.exceptions import (
    ConcurrentModificationError,
    ImmutableProjectError,
    InvalidInputError,
    InvalidTransitionError,
    ProjectNotFoundError,
    TransitionGuardError,
)
from blue_carbon.services.lifecycle import ProjectLifecycleService, ThresholdProgressGate, TRANSITIONS


def make_certificate(project_id):
    return Certificate(
        certificate_id="NCCR-CERT-2025-ABCDEF0123",
        project_id=project_id,
        credits_generated=150,
        blockchain_hash="0xabcdef0123456789",
        vintage_year=2025,
    )


async def advance_to(lifecycle, project, status, panchayat, reviewer, media):
    """Walk the happy path until ``status`` is reached."""
    steps = [
        (ProjectStatus.UNDER_REVIEW, reviewer),
        (ProjectStatus.APPROVED, reviewer),
        (ProjectStatus.IN_PROGRESS, panchayat),
        (ProjectStatus.FINAL_VERIFICATION, panchayat),
    ]
    for next_status, actor in steps:
        if project.status == status:
            break
        if next_status == ProjectStatus.IN_PROGRESS:
            project = await lifecycle.attach_media(project, media, panchayat)
        if next_status == ProjectStatus.FINAL_VERIFICATION:
            project = await lifecycle.update_progress(project, 100, panchayat)
        project = await lifecycle.transition(project, next_status, actor)
    return project


class TestSubmitProject:
    """Tests for project submission."""

    @pytest.mark.asyncio
    async def test_submit(self, lifecycle, sample_project, panchayat, project_repository):
        """Test submission stores the project with its first timeline entry."""
        # Execute
        project = await lifecycle.submit_project(sample_project, panchayat)

        # Verify
        assert project.id
        assert project.status == ProjectStatus.SUBMITTED
        assert project.revision == 0
        assert project.submitter_id == panchayat.id
        assert len(project.timeline.entries) == 1
        entry = project.timeline.active_entry
        assert entry.status == ProjectStatus.SUBMITTED
        assert entry.actor_id == panchayat.id
        assert entry.cycle == 1
        assert project_repository.get(project.id) == project

    @pytest.mark.asyncio
    async def test_submit_does_not_mutate_argument(self, lifecycle, sample_project, panchayat):
        await lifecycle.submit_project(sample_project, panchayat)
        assert sample_project.id == ""
        assert sample_project.timeline.entries == []

    @pytest.mark.asyncio
    async def test_get_project_not_found(self, lifecycle):
        with pytest.raises(ProjectNotFoundError):
            await lifecycle.get_project("missing")


class TestTransitions:
    """Tests for the transition graph and its guards."""

    @pytest.mark.asyncio
    async def test_full_path(self, lifecycle, submitted_project, panchayat, reviewer, sample_media):
        """Test the happy path through final verification."""
        project = await advance_to(
            lifecycle, submitted_project, ProjectStatus.FINAL_VERIFICATION, panchayat, reviewer, sample_media)

        assert project.status == ProjectStatus.FINAL_VERIFICATION
        assert [e.status for e in project.timeline.entries] == [
            ProjectStatus.SUBMITTED,
            ProjectStatus.UNDER_REVIEW,
            ProjectStatus.APPROVED,
            ProjectStatus.IN_PROGRESS,
            ProjectStatus.FINAL_VERIFICATION,
        ]
        stored = await lifecycle.get_project(project.id)
        assert stored == project

    @pytest.mark.asyncio
    async def test_each_transition_appends_one_entry(self, lifecycle, submitted_project, reviewer):
        before = len(submitted_project.timeline.entries)
        project = await lifecycle.transition(submitted_project, ProjectStatus.UNDER_REVIEW, reviewer, "Picked up")

        assert len(project.timeline.entries) == before + 1
        assert project.timeline.entries[-1].comment == "Picked up"
        assert project.updated_at == project.timeline.entries[-1].timestamp
        assert project.updated_at >= project.created_at

    @pytest.mark.asyncio
    async def test_timeline_is_submission_plus_transitions(self, lifecycle, submitted_project, panchayat, reviewer):
        """Test the timeline holds the submission entry and one entry per applied transition."""
        # Setup
        steps = [
            (ProjectStatus.UNDER_REVIEW, reviewer),
            (ProjectStatus.CORRECTIONS_REQUESTED, reviewer),
            (ProjectStatus.UNDER_REVIEW, panchayat),
            (ProjectStatus.APPROVED, reviewer),
        ]
        project = submitted_project
        applied = 0

        # Execute
        for status, actor in steps:
            project = await lifecycle.transition(project, status, actor)
            applied += 1

        # Verify
        assert len(project.timeline.entries) == applied + 1
        assert project.timeline.entries[0].status == ProjectStatus.SUBMITTED
        assert [e.status for e in project.timeline.entries[1:]] == [status for status, _ in steps]

    @pytest.mark.asyncio
    async def test_exactly_one_active_entry(self, lifecycle, submitted_project, panchayat, reviewer, sample_media):
        project = await advance_to(
            lifecycle, submitted_project, ProjectStatus.FINAL_VERIFICATION, panchayat, reviewer, sample_media)

        active = [e for e in project.timeline.entries if e.active]
        assert len(active) == 1
        assert active[0] is project.timeline.entries[-1]

    @pytest.mark.asyncio
    async def test_timestamps_strictly_increase(self, lifecycle, submitted_project, panchayat, reviewer, sample_media):
        project = await advance_to(
            lifecycle, submitted_project, ProjectStatus.FINAL_VERIFICATION, panchayat, reviewer, sample_media)

        timestamps = [e.timestamp for e in project.timeline.entries]
        assert all(a < b for a, b in zip(timestamps, timestamps[1:]))

    @pytest.mark.asyncio
    async def test_argument_not_mutated(self, lifecycle, submitted_project, reviewer):
        await lifecycle.transition(submitted_project, ProjectStatus.UNDER_REVIEW, reviewer)

        assert submitted_project.status == ProjectStatus.SUBMITTED
        assert len(submitted_project.timeline.entries) == 1
        assert submitted_project.revision == 0

    @pytest.mark.asyncio
    async def test_illegal_jump_leaves_project_unchanged(self, lifecycle, submitted_project, reviewer):
        """Test submitted -> credits-issued is rejected with no side effects."""
        with pytest.raises(InvalidTransitionError) as exc_info:
            await lifecycle.transition(submitted_project, ProjectStatus.CREDITS_ISSUED, reviewer)

        assert exc_info.value.from_state == ProjectStatus.SUBMITTED
        assert exc_info.value.to_state == ProjectStatus.CREDITS_ISSUED
        stored = await lifecycle.get_project(submitted_project.id)
        assert stored.status == ProjectStatus.SUBMITTED
        assert len(stored.timeline.entries) == 1
        assert stored.revision == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("target", [
        ProjectStatus.APPROVED,
        ProjectStatus.IN_PROGRESS,
        ProjectStatus.FINAL_VERIFICATION,
        ProjectStatus.SUBMITTED,
    ])
    async def test_edges_outside_graph(self, lifecycle, submitted_project, reviewer, target):
        with pytest.raises(InvalidTransitionError):
            await lifecycle.transition(submitted_project, target, reviewer)

    @pytest.mark.asyncio
    async def test_unknown_status_string(self, lifecycle, submitted_project, reviewer):
        with pytest.raises(InvalidInputError):
            await lifecycle.transition(submitted_project, "archived", reviewer)

    @pytest.mark.asyncio
    async def test_status_given_as_string(self, lifecycle, submitted_project, reviewer):
        project = await lifecycle.transition(submitted_project, "under-review", reviewer)
        assert project.status == ProjectStatus.UNDER_REVIEW

    @pytest.mark.asyncio
    async def test_review_requires_reviewer(self, lifecycle, submitted_project, panchayat):
        with pytest.raises(TransitionGuardError):
            await lifecycle.transition(submitted_project, ProjectStatus.UNDER_REVIEW, panchayat)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("target", [ProjectStatus.APPROVED, ProjectStatus.CORRECTIONS_REQUESTED])
    async def test_decisions_require_reviewer(self, lifecycle, submitted_project, reviewer, ngo, target):
        project = await lifecycle.transition(submitted_project, ProjectStatus.UNDER_REVIEW, reviewer)
        with pytest.raises(TransitionGuardError):
            await lifecycle.transition(project, target, ngo)

    @pytest.mark.asyncio
    async def test_resubmission_requires_original_submitter(self, lifecycle, submitted_project, reviewer, ngo):
        project = await lifecycle.transition(submitted_project, ProjectStatus.UNDER_REVIEW, reviewer)
        project = await lifecycle.transition(project, ProjectStatus.CORRECTIONS_REQUESTED, reviewer, "Fix GPS")

        with pytest.raises(TransitionGuardError):
            await lifecycle.transition(project, ProjectStatus.UNDER_REVIEW, ngo)
        with pytest.raises(TransitionGuardError):
            await lifecycle.transition(project, ProjectStatus.UNDER_REVIEW, reviewer)

    @pytest.mark.asyncio
    async def test_corrections_cycle_increments(self, lifecycle, submitted_project, panchayat, reviewer):
        """Test each resubmission starts a new approval cycle."""
        project = await lifecycle.transition(submitted_project, ProjectStatus.UNDER_REVIEW, reviewer)
        for _ in range(2):
            project = await lifecycle.transition(project, ProjectStatus.CORRECTIONS_REQUESTED, reviewer)
            project = await lifecycle.transition(project, ProjectStatus.UNDER_REVIEW, panchayat)
        project = await lifecycle.transition(project, ProjectStatus.APPROVED, reviewer)

        assert [e.cycle for e in project.timeline.entries] == [1, 1, 1, 2, 2, 3, 3]
        assert project.timeline.current_cycle == 3
        assert [e.status for e in project.timeline.cycle(3)] == [
            ProjectStatus.UNDER_REVIEW, ProjectStatus.APPROVED]

    @pytest.mark.asyncio
    async def test_in_progress_requires_media(self, lifecycle, submitted_project, panchayat, reviewer):
        project = await lifecycle.transition(submitted_project, ProjectStatus.UNDER_REVIEW, reviewer)
        project = await lifecycle.transition(project, ProjectStatus.APPROVED, reviewer)

        with pytest.raises(TransitionGuardError, match="media"):
            await lifecycle.transition(project, ProjectStatus.IN_PROGRESS, panchayat)

    @pytest.mark.asyncio
    async def test_final_verification_requires_progress(
        self, lifecycle, submitted_project, panchayat, reviewer, sample_media
    ):
        project = await advance_to(
            lifecycle, submitted_project, ProjectStatus.IN_PROGRESS, panchayat, reviewer, sample_media)
        project = await lifecycle.update_progress(project, 89.9, panchayat)

        with pytest.raises(TransitionGuardError, match="progress"):
            await lifecycle.transition(project, ProjectStatus.FINAL_VERIFICATION, panchayat)

        project = await lifecycle.update_progress(project, 90, panchayat)
        project = await lifecycle.transition(project, ProjectStatus.FINAL_VERIFICATION, panchayat)
        assert project.status == ProjectStatus.FINAL_VERIFICATION

    @pytest.mark.asyncio
    async def test_configured_threshold(
        self, project_repository, sample_project, panchayat, reviewer, sample_media
    ):
        lifecycle = ProjectLifecycleService(project_repository, policy=LifecyclePolicy(final_verification_threshold=50))
        project = await lifecycle.submit_project(sample_project, panchayat)
        project = await advance_to(lifecycle, project, ProjectStatus.IN_PROGRESS, panchayat, reviewer, sample_media)
        project = await lifecycle.update_progress(project, 50, panchayat)

        project = await lifecycle.transition(project, ProjectStatus.FINAL_VERIFICATION, panchayat)
        assert project.status == ProjectStatus.FINAL_VERIFICATION

    @pytest.mark.asyncio
    async def test_pluggable_progress_gate(
        self, project_repository, sample_project, panchayat, reviewer, sample_media
    ):
        verified_on_site = set()
        lifecycle = ProjectLifecycleService(project_repository, progress_gate=lambda p: p.id in verified_on_site)
        project = await lifecycle.submit_project(sample_project, panchayat)
        project = await advance_to(lifecycle, project, ProjectStatus.IN_PROGRESS, panchayat, reviewer, sample_media)

        with pytest.raises(TransitionGuardError):
            await lifecycle.transition(project, ProjectStatus.FINAL_VERIFICATION, panchayat)

        verified_on_site.add(project.id)
        project = await lifecycle.transition(project, ProjectStatus.FINAL_VERIFICATION, panchayat)
        assert project.status == ProjectStatus.FINAL_VERIFICATION
        assert project.progress_percent == 0

    @pytest.mark.asyncio
    async def test_credits_issued_is_pipeline_only(self, lifecycle, verified_project, reviewer):
        system = Actor(id="system", role=ActorRole.SYSTEM)
        for actor in (reviewer, system):
            with pytest.raises(TransitionGuardError, match="issuance pipeline"):
                await lifecycle.transition(verified_project, ProjectStatus.CREDITS_ISSUED, actor)

    def test_allowed_transitions(self, lifecycle, sample_project):
        sample_project.status = ProjectStatus.UNDER_REVIEW
        assert set(lifecycle.allowed_transitions(sample_project)) == {
            ProjectStatus.CORRECTIONS_REQUESTED, ProjectStatus.APPROVED}

        sample_project.status = ProjectStatus.FINAL_VERIFICATION
        assert lifecycle.allowed_transitions(sample_project) == []

    def test_graph_reaches_every_status(self):
        reachable = {ProjectStatus.SUBMITTED}
        frontier = [ProjectStatus.SUBMITTED]
        while frontier:
            for target in TRANSITIONS[frontier.pop()]:
                if target not in reachable:
                    reachable.add(target)
                    frontier.append(target)
        assert reachable == set(ProjectStatus)
        assert TRANSITIONS[ProjectStatus.CREDITS_ISSUED] == {}


class TestConcurrency:
    """Tests for optimistic concurrency on transitions."""

    @pytest.mark.asyncio
    async def test_racing_reviewers(self, lifecycle, submitted_project, reviewer):
        """Test two reviewers deciding on the same revision: exactly one wins."""
        project = await lifecycle.transition(submitted_project, ProjectStatus.UNDER_REVIEW, reviewer)
        copy_a = await lifecycle.get_project(project.id)
        copy_b = await lifecycle.get_project(project.id)

        results = await asyncio.gather(
            lifecycle.transition(copy_a, ProjectStatus.APPROVED, reviewer),
            lifecycle.transition(copy_b, ProjectStatus.CORRECTIONS_REQUESTED, reviewer),
            return_exceptions=True,
        )

        errors = [r for r in results if isinstance(r, Exception)]
        winners = [r for r in results if not isinstance(r, Exception)]
        assert len(errors) == 1 and isinstance(errors[0], ConcurrentModificationError)
        assert len(winners) == 1

        stored = await lifecycle.get_project(project.id)
        assert stored.status == winners[0].status
        assert len(stored.timeline.entries) == 3

    @pytest.mark.asyncio
    async def test_stale_copy_rejected(self, lifecycle, submitted_project, reviewer):
        await lifecycle.transition(submitted_project, ProjectStatus.UNDER_REVIEW, reviewer)

        with pytest.raises(ConcurrentModificationError) as exc_info:
            await lifecycle.transition(submitted_project, ProjectStatus.UNDER_REVIEW, reviewer)
        assert exc_info.value.expected_revision == 0

    @pytest.mark.asyncio
    async def test_revision_increments(self, lifecycle, submitted_project, reviewer, panchayat, sample_media):
        project = await lifecycle.transition(submitted_project, ProjectStatus.UNDER_REVIEW, reviewer)
        assert project.revision == 1
        project = await lifecycle.attach_media(project, sample_media, panchayat)
        assert project.revision == 2


class TestMutators:
    """Tests for media, progress and finalization."""

    @pytest.mark.asyncio
    async def test_attach_media(self, lifecycle, submitted_project, panchayat, sample_media):
        project = await lifecycle.attach_media(submitted_project, sample_media, panchayat)

        assert project.media == [sample_media]
        assert submitted_project.media == []
        assert len(project.timeline.entries) == 1
        assert project.updated_at > submitted_project.updated_at

    @pytest.mark.asyncio
    @pytest.mark.parametrize("percent", [-1, 100.5, "50", None, True])
    async def test_update_progress_invalid(self, lifecycle, submitted_project, panchayat, percent):
        with pytest.raises(InvalidInputError):
            await lifecycle.update_progress(submitted_project, percent, panchayat)

    @pytest.mark.asyncio
    async def test_finalize_issuance(self, lifecycle, verified_project):
        system = Actor(id="issuance", role=ActorRole.SYSTEM)
        certificate = make_certificate(verified_project.id)

        project = await lifecycle.finalize_issuance(verified_project, certificate, system)

        assert project.status == ProjectStatus.CREDITS_ISSUED
        assert project.certificate_id == certificate.certificate_id
        head = project.timeline.active_entry
        assert head is project.timeline.entries[-1]
        assert head.status == ProjectStatus.CREDITS_ISSUED
        assert head.certificate_id == certificate.certificate_id
        assert len(project.timeline.entries) == 6

    @pytest.mark.asyncio
    async def test_finalize_is_idempotent(self, lifecycle, verified_project):
        system = Actor(id="issuance", role=ActorRole.SYSTEM)
        certificate = make_certificate(verified_project.id)
        project = await lifecycle.finalize_issuance(verified_project, certificate, system)

        again = await lifecycle.finalize_issuance(project, certificate, system)

        assert again == project

    @pytest.mark.asyncio
    async def test_finalize_requires_final_verification(self, lifecycle, submitted_project):
        system = Actor(id="issuance", role=ActorRole.SYSTEM)
        with pytest.raises(InvalidTransitionError):
            await lifecycle.finalize_issuance(submitted_project, make_certificate(submitted_project.id), system)

    @pytest.mark.asyncio
    async def test_finalize_rejects_foreign_certificate(self, lifecycle, verified_project):
        system = Actor(id="issuance", role=ActorRole.SYSTEM)
        with pytest.raises(InvalidInputError):
            await lifecycle.finalize_issuance(verified_project, make_certificate("other-project"), system)

    @pytest.mark.asyncio
    async def test_issued_project_is_immutable(self, lifecycle, verified_project, panchayat, reviewer, sample_media):
        system = Actor(id="issuance", role=ActorRole.SYSTEM)
        project = await lifecycle.finalize_issuance(verified_project, make_certificate(verified_project.id), system)

        with pytest.raises(ImmutableProjectError):
            await lifecycle.transition(project, ProjectStatus.UNDER_REVIEW, reviewer)
        with pytest.raises(ImmutableProjectError):
            await lifecycle.attach_media(project, sample_media, panchayat)
        with pytest.raises(ImmutableProjectError):
            await lifecycle.update_progress(project, 50, panchayat)

        stored = await lifecycle.get_project(project.id)
        assert stored == project

    @pytest.mark.asyncio
    async def test_list_by_status(self, lifecycle, sample_project, panchayat, reviewer):
        first = await lifecycle.submit_project(sample_project, panchayat)
        second = await lifecycle.submit_project(sample_project, panchayat)
        await lifecycle.transition(second, ProjectStatus.UNDER_REVIEW, reviewer)

        submitted = await lifecycle.list_by_status(ProjectStatus.SUBMITTED)
        under_review = await lifecycle.list_by_status(ProjectStatus.UNDER_REVIEW)

        assert [p.id for p in submitted] == [first.id]
        assert [p.id for p in under_review] == [second.id]


def test_threshold_gate(sample_project):
    gate = ThresholdProgressGate(75)
    sample_project.progress_percent = 74.9
    assert not gate(sample_project)
    sample_project.progress_percent = 75
    assert gate(sample_project)
