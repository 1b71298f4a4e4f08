import datetime as dt
import uuid
from decimal import Decimal

import pytest

from finstack import schemas
from finstack.errors import NotFound
from finstack.infra import models
from finstack.services import record_service, user_service


@pytest.fixture()
def owner(db_session, hasher):
    return user_service.register_user(db_session, hasher, schemas.UserCreate(email="owner@x.com", password="pw-owner"))


@pytest.fixture()
def stranger(db_session, hasher):
    return user_service.register_user(
        db_session, hasher, schemas.UserCreate(email="stranger@x.com", password="pw-stranger")
    )


def test_create_expense_defaults(db_session, owner):
    expense = record_service.create_record(
        db_session,
        models.Expense,
        owner.id,
        schemas.ExpenseCreate(item_name="Groceries", amount=Decimal("50.00"), description="Weekly"),
    )
    assert isinstance(expense.id, uuid.UUID)
    assert expense.user_id == owner.id
    assert expense.amount == Decimal("50.00")
    assert expense.date == dt.datetime.now(dt.timezone.utc).date()
    assert expense.created_at == expense.updated_at


def test_list_is_scoped_and_newest_first(db_session, owner, stranger):
    for day, amount in ((1, "10.00"), (3, "30.00"), (2, "20.00")):
        record_service.create_record(
            db_session,
            models.Income,
            owner.id,
            schemas.IncomeCreate(source="Freelance", amount=amount, date=dt.date(2024, 3, day)),
        )
    record_service.create_record(
        db_session, models.Income, stranger.id, schemas.IncomeCreate(source="Salary", amount="99.00")
    )

    incomes = record_service.list_records(db_session, models.Income, owner.id)
    assert [i.date.day for i in incomes] == [3, 2, 1]
    assert all(i.user_id == owner.id for i in incomes)
    assert record_service.list_records(db_session, models.Expense, owner.id) == []


def test_list_for_unknown_owner(db_session):
    with pytest.raises(NotFound):
        record_service.list_records(db_session, models.Expense, uuid.uuid4())


def test_get_not_owned_looks_missing(db_session, owner, stranger):
    theirs = record_service.create_record(
        db_session, models.Expense, stranger.id, schemas.ExpenseCreate(item_name="Gym", amount="35.00")
    )
    with pytest.raises(NotFound):
        record_service.get_record(db_session, models.Expense, owner.id, theirs.id)
    with pytest.raises(NotFound):
        record_service.update_record(
            db_session, models.Expense, owner.id, theirs.id, schemas.ExpenseUpdate(item_name="Mine now")
        )
    with pytest.raises(NotFound):
        record_service.delete_record(db_session, models.Expense, owner.id, theirs.id)
    assert record_service.get_record(db_session, models.Expense, stranger.id, theirs.id).item_name == "Gym"


def test_partial_update(db_session, owner):
    income = record_service.create_record(
        db_session,
        models.Income,
        owner.id,
        schemas.IncomeCreate(source="Salary", amount="5000.00", date=dt.date(2024, 3, 20), description="March"),
    )
    updated = record_service.update_record(
        db_session, models.Income, owner.id, income.id, schemas.IncomeUpdate(amount="5100.00")
    )
    assert updated.amount == Decimal("5100.00")
    assert updated.source == "Salary"
    assert updated.description == "March"
    assert updated.date == dt.date(2024, 3, 20)
    assert updated.updated_at >= updated.created_at


def test_delete_record(db_session, owner):
    expense = record_service.create_record(
        db_session, models.Expense, owner.id, schemas.ExpenseCreate(item_name="Coffee", amount="3.50")
    )
    record_service.delete_record(db_session, models.Expense, owner.id, expense.id)
    with pytest.raises(NotFound):
        record_service.get_record(db_session, models.Expense, owner.id, expense.id)


def test_create_for_unknown_owner(db_session):
    with pytest.raises(NotFound):
        record_service.create_record(
            db_session, models.Expense, uuid.uuid4(), schemas.ExpenseCreate(item_name="Ghost", amount="1.00")
        )
