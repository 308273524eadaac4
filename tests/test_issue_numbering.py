"""Per-project issue numbering: sequential, never reused, collision-safe."""

from __future__ import annotations

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from workhub.models.issue import Issue
from workhub.models.project import Project
from workhub.services.issue_service import (
    create_issue,
    delete_issue,
    get_issue_by_key,
    next_issue_number,
)
from workhub.services.project_service import create_project


@pytest.fixture
def project(db: Session, workspace, owner) -> Project:
    return create_project(db, workspace, owner, "owner", "Platform", "PLAT")


class TestIssueNumbering:
    def test_numbers_start_at_one_and_increase(self, db: Session, workspace, project, owner) -> None:
        numbers = [create_issue(db, workspace, project, owner, f"Issue {i}").number for i in range(3)]
        assert numbers == [1, 2, 3]

    def test_numbers_are_not_reused_after_delete(self, db: Session, workspace, project, owner) -> None:
        create_issue(db, workspace, project, owner, "One")
        two = create_issue(db, workspace, project, owner, "Two")
        create_issue(db, workspace, project, owner, "Three")
        delete_issue(db, two, "owner", owner.id)
        four = create_issue(db, workspace, project, owner, "Four")
        assert four.number == 4

    def test_numbering_is_per_project(self, db: Session, workspace, project, owner) -> None:
        other = create_project(db, workspace, owner, "owner", "Mobile", "MOB")
        create_issue(db, workspace, project, owner, "A")
        create_issue(db, workspace, project, owner, "B")
        assert create_issue(db, workspace, other, owner, "C").number == 1

    def test_identifier_combines_project_and_number(self, db: Session, workspace, project, owner) -> None:
        issue = create_issue(db, workspace, project, owner, "Keyed")
        assert issue.identifier == "PLAT-1"
        assert get_issue_by_key(db, workspace, "plat-1").id == issue.id

    def test_counter_never_decreases(self, db: Session, workspace, project, owner) -> None:
        issue = create_issue(db, workspace, project, owner, "Only")
        delete_issue(db, issue, "owner", owner.id)
        counter = db.scalar(select(Project.last_issue_number).where(Project.id == project.id))
        assert counter == 1


class TestNumberCollisions:
    def test_duplicate_number_rejected_by_constraint(self, db: Session, workspace, project, owner) -> None:
        create_issue(db, workspace, project, owner, "First")
        db.add(
            Issue(
                workspace_id=workspace.id,
                project_id=project.id,
                number=1,
                title="Clash",
                created_by_id=owner.id,
            )
        )
        with pytest.raises(IntegrityError):
            db.commit()
        db.rollback()

    def test_counter_behind_stored_numbers_resyncs(self, db: Session, workspace, project, owner) -> None:
        """Rows written without the counter make the next number collide once, then recover."""
        for number in (1, 2):
            db.add(
                Issue(
                    workspace_id=workspace.id,
                    project_id=project.id,
                    number=number,
                    title=f"Imported {number}",
                    created_by_id=owner.id,
                )
            )
        db.commit()

        issue = create_issue(db, workspace, project, owner, "After import")
        assert issue.number == 3
        counter = db.scalar(select(Project.last_issue_number).where(Project.id == project.id))
        assert counter == 3

    def test_next_issue_number_unknown_project(self, db: Session) -> None:
        import uuid

        from workhub.errors import NotFoundError

        with pytest.raises(NotFoundError):
            next_issue_number(db, uuid.uuid4())
        db.rollback()


class TestConcurrentCreation:
    def test_parallel_creators_get_distinct_sequential_numbers(
        self, file_engine, run_concurrently
    ) -> None:
        from workhub.models.user import User
        from workhub.models.workspace import Workspace
        from workhub.services.workspace_service import create_workspace

        with Session(bind=file_engine, expire_on_commit=False) as setup:
            creator = User(name="Racer", email="racer@example.com")
            setup.add(creator)
            setup.commit()
            workspace = create_workspace(setup, creator, "Race", "race")
            project = create_project(setup, workspace, creator, "owner", "Race", "RACE")
            ids = (workspace.id, project.id, creator.id)

        workers = 10

        def create(index: int) -> int:
            workspace_id, project_id, user_id = ids
            with Session(bind=file_engine) as session:
                issue = create_issue(
                    session,
                    session.get(Workspace, workspace_id),
                    session.get(Project, project_id),
                    session.get(User, user_id),
                    f"Parallel {index}",
                )
                return issue.number

        numbers, errors = run_concurrently(create, workers)

        assert errors == []
        assert sorted(numbers) == list(range(1, workers + 1))
        with Session(bind=file_engine) as check:
            counter = check.scalar(select(Project.last_issue_number).where(Project.id == ids[1]))
        assert counter == workers
