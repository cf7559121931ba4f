"""Default SQL-backed collaborators.

``SqlIdeaCatalog`` and ``SqlProfileDirectory`` read the ``idearow`` and
``builderprofilerow`` tables. Deployments where ideas or profiles live in
another service can pass their own objects satisfying ``IIdeaCatalog`` and
``IProfileDirectory`` instead.
"""

from sqlmodel import Session

from ideaengage.models import BuilderProfileRow, ClaimerSummary, IdeaRow
from ideaengage.repository import Repository


class SqlIdeaCatalog:
    """Idea existence check against the ``idearow`` table."""

    def __init__(self, session: Session):
        self._ideas = Repository[IdeaRow](session, IdeaRow)

    def exists(self, idea_id: str) -> bool:
        return self._ideas.exists(idea_id)


class SqlProfileDirectory:
    """Builder profile lookup against the ``builderprofilerow`` table.

    Users without a profile row still get a summary; it just carries nothing
    but their id.
    """

    def __init__(self, session: Session):
        self._profiles = Repository[BuilderProfileRow](session, BuilderProfileRow)

    def summary(self, user_id: str) -> ClaimerSummary:
        row = self._profiles.get(user_id)
        if row is None:
            return ClaimerSummary(id=user_id)
        return ClaimerSummary.from_row(row)


__all__ = ["SqlIdeaCatalog", "SqlProfileDirectory"]
