from datetime import date
from decimal import Decimal

from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from database import Base
from models import Account
from schemas import ExpenseIn
from services import ExpenseService, InsightsService


def _account(session: Session, email: str = "a@example.com") -> Account:
    account = Account(
        email=email, password_hash="x", first_name="Test", last_name="User"
    )
    session.add(account)
    session.commit()
    return account


def _add(session: Session, account_id: int, amount: str, category: str) -> None:
    ExpenseService(session, account_id).create(
        ExpenseIn(amount=Decimal(amount), category=category, date=date(2024, 1, 1))
    )


def test_no_expenses_yields_empty_summary() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        owner = _account(session)

        summary = InsightsService(session, owner.id).summarize()

        assert summary == {"total_by_category": {}, "distribution": []}


def test_single_category_is_one_hundred_percent() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        owner = _account(session)
        _add(session, owner.id, "50", "food")
        _add(session, owner.id, "30", "food")

        summary = InsightsService(session, owner.id).summarize()

        assert summary["total_by_category"] == {"food": 80.0}
        assert summary["distribution"] == [
            {"category": "food", "amount": 80.0, "percentage": "100.00"}
        ]


def test_categories_keep_first_seen_order_and_round_percentages() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        owner = _account(session)
        other = _account(session, "b@example.com")
        _add(session, owner.id, "10", "rent")
        _add(session, owner.id, "10", "food")
        _add(session, other.id, "999", "travel")
        _add(session, owner.id, "10", "fun")

        summary = InsightsService(session, owner.id).summarize()

        assert list(summary["total_by_category"]) == ["rent", "food", "fun"]
        assert [row["percentage"] for row in summary["distribution"]] == [
            "33.33",
            "33.33",
            "33.33",
        ]
